"""
Legal Entity Identifier generation and validation (ISO 17442).

An LEI is 20 characters: a 4-character LOU prefix, two reserved ``0``
characters, a 12-character entity part and two check digits computed with
ISO 7064 MOD 97-10 over the whole code.
"""

import re
import secrets
import string

LEI_PATTERN = re.compile(r"^[A-Z0-9]{18}[0-9]{2}$")
ENTITY_ALPHABET = string.ascii_uppercase + string.digits


def _as_digits(code: str) -> int:
    # A=10 ... Z=35
    return int("".join(str(int(ch, 36)) for ch in code))


def check_digits(base: str) -> str:
    """MOD 97-10 check digits for an 18-character LEI base."""
    return f"{98 - (_as_digits(base + '00') % 97):02d}"


def generate_lei(prefix: str) -> str:
    if len(prefix) != 4 or not prefix.isalnum():
        raise ValueError(f"LEI prefix must be 4 alphanumeric characters: {prefix!r}")
    entity = "".join(secrets.choice(ENTITY_ALPHABET) for _ in range(12))
    base = f"{prefix.upper()}00{entity}"
    return base + check_digits(base)


def validate_lei(lei: str) -> bool:
    """True if ``lei`` is well formed and its check digits verify."""
    if not isinstance(lei, str):
        return False
    lei = lei.strip().upper()
    if not LEI_PATTERN.match(lei):
        return False
    return _as_digits(lei) % 97 == 1
