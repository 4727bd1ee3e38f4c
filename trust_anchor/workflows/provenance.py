"""
Tamper-evident provenance chains.

Every link signs its step name, provider, timestamp, a digest of the step's
result, and the previous link's signature with HMAC-SHA256. The first link
chains from the workflow id, so links cannot be reordered, dropped, or moved
to another workflow without breaking verification.
"""

import hashlib
import hmac
import json
from typing import Any


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def digest(value: Any) -> str:
    return hashlib.sha256(canonical_json(value).encode("utf-8")).hexdigest()


def sign(secret: str, value: Any) -> str:
    return hmac.new(secret.encode("utf-8"), canonical_json(value).encode("utf-8"), hashlib.sha256).hexdigest()


def _signed_fields(link: dict) -> dict:
    return {
        "step": link.get("step"),
        "provider": link.get("provider"),
        "timestamp": link.get("timestamp"),
        "result_digest": link.get("result_digest"),
        "previous_signature": link.get("previous_signature"),
    }


def chain_head(chain: list[dict], genesis: str) -> str:
    return chain[-1]["signature"] if chain else genesis


def append_link(
    chain: list[dict],
    secret: str,
    genesis: str,
    step: str,
    provider: str,
    timestamp: str,
    result: Any,
) -> list[dict]:
    """Return a new chain with a signed link for ``result`` appended."""
    link = {
        "step": step,
        "provider": provider,
        "timestamp": timestamp,
        "result_digest": digest(result),
        "previous_signature": chain_head(chain, genesis),
    }
    link["signature"] = sign(secret, _signed_fields(link))
    return [*chain, link]


def verify_chain(chain: list[dict], secret: str, genesis: str) -> dict:
    """Recompute every link.

    Returns ``{"valid": bool, "length": n, "broken_at": index | None}``.
    """
    previous = genesis
    for index, link in enumerate(chain):
        if link.get("previous_signature") != previous:
            return {"valid": False, "length": len(chain), "broken_at": index}
        expected = sign(secret, _signed_fields(link))
        if not hmac.compare_digest(expected, str(link.get("signature", ""))):
            return {"valid": False, "length": len(chain), "broken_at": index}
        previous = link["signature"]
    return {"valid": True, "length": len(chain), "broken_at": None}
