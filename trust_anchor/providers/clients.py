"""
HTTP clients for third-party compliance providers.

Thin wrappers over the provider REST APIs:
- AML Watcher: sanctions/PEP screening for transactions and businesses
- GLEIF: LEI record search and record lookup
- Facia: face match for identity verification
- GeoIP: IP geolocation and VPN/proxy detection

Each client raises IntegrationError on transport or HTTP failures so callers
can decide whether a provider outage is fatal.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from trust_anchor.core.config import Settings, get_settings
from trust_anchor.core.errors import IntegrationError

logger = logging.getLogger(__name__)


class _JsonClient:
    """Shared request plumbing."""

    def __init__(self, base_url: str, timeout: float, http: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> dict:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.http.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as e:
            raise IntegrationError(f"{method} {url} failed: {e}") from e
        try:
            return response.json()
        except ValueError as e:
            raise IntegrationError(f"{method} {url} returned invalid JSON") from e


class AMLWatcherClient(_JsonClient):
    """Client for AML Watcher screening."""

    def __init__(self, settings: Settings | None = None, http: requests.Session | None = None):
        settings = settings or get_settings()
        super().__init__(settings.amlwatcher_base_url, settings.http_timeout_seconds, http)
        self.api_key = settings.amlwatcher_api_key
        self.client_id = settings.amlwatcher_client_id
        self.client_secret = settings.amlwatcher_client_secret

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def screen_transaction(self, name: str | None, country: str | None, amount: float) -> dict:
        """Screen a transaction counterparty.

        Returns:
            Dict with risk_score and matches
        """
        return self._request(
            "POST",
            "/screen",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"name": name, "country": country, "transaction_amount": amount},
        )

    def _access_token(self) -> str:
        data = self._request(
            "POST",
            "/oauth/token",
            json={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
            },
        )
        token = data.get("access_token")
        if not token:
            raise IntegrationError("Failed to get AML Watcher access token")
        return token

    def screen_business(
        self,
        entity_name: str,
        country: str | None,
        registration_number: str | None = None,
        screening_type: str = "enhanced",
    ) -> dict:
        """Run an enhanced KYB screening for a business entity.

        Returns:
            Dict with screening_id, risk_level, matches, risk_indicators
        """
        token = self._access_token()
        return self._request(
            "POST",
            "/v1/screening/kyb",
            headers={"Authorization": f"Bearer {token}"},
            json={
                "entity_name": entity_name,
                "entity_type": "business",
                "country": country,
                "registration_number": registration_number,
                "screening_type": screening_type,
            },
        )

    def search(self, name: str, categories: list[str], match_score: int) -> dict:
        """Search the watchlists for an organization name.

        Returns:
            Dict whose ``data.matches`` carry name, match_score and categories
        """
        return self._request(
            "POST",
            "/api/search",
            json={
                "name": name,
                "categories": categories,
                "entity_type": ["Organization"],
                "match_score": match_score,
                "api_key": self.api_key,
            },
        )


class GleifClient(_JsonClient):
    """Client for the public GLEIF LEI API."""

    def __init__(self, settings: Settings | None = None, http: requests.Session | None = None):
        settings = settings or get_settings()
        super().__init__(settings.gleif_base_url, settings.http_timeout_seconds, http)

    def search(self, name: str) -> dict:
        return self._request(
            "GET", "/lei-records", params={"filter[entity.legalName]": name, "page[size]": 10}
        )

    def get_details(self, lei: str) -> dict:
        return self._request("GET", f"/lei-records/{lei}")


class GeoIPClient(_JsonClient):
    """Client for IP geolocation lookups."""

    def __init__(self, settings: Settings | None = None, http: requests.Session | None = None):
        settings = settings or get_settings()
        super().__init__(settings.geoip_base_url, settings.http_timeout_seconds, http)

    def lookup(self, ip_address: str) -> dict:
        return self._request("GET", f"/json/{ip_address}")


class FaciaClient(_JsonClient):
    """Client for Facia face matching."""

    def __init__(self, settings: Settings | None = None, http: requests.Session | None = None):
        settings = settings or get_settings()
        super().__init__(settings.facia_base_url, settings.http_timeout_seconds, http)
        self.api_key = settings.facia_api_key

    def face_match(self, face_frame: str, id_frame: str, client_reference: str) -> dict:
        return self._request(
            "POST",
            "/face-match",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "face_frame": face_frame,
                "id_frame": id_frame,
                "client_reference": client_reference,
            },
        )


class HttpPoster:
    """Outbound HTTP to customer and provider URLs (callbacks, webhooks, health checks)."""

    def __init__(self, timeout: float | None = None, http: requests.Session | None = None):
        self.timeout = timeout if timeout is not None else get_settings().http_timeout_seconds
        self.http = http or requests.Session()

    def post(self, url: str, body: str, headers: dict[str, str] | None = None) -> int:
        """POST a pre-serialized JSON body and return the HTTP status code."""
        all_headers = {"Content-Type": "application/json", **(headers or {})}
        try:
            response = self.http.post(url, data=body.encode("utf-8"), headers=all_headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise IntegrationError(f"POST {url} failed: {e}") from e
        return response.status_code

    def check(self, url: str, headers: dict[str, str] | None = None) -> tuple[int, float]:
        """GET ``url`` and return the HTTP status code and response time in ms."""
        try:
            response = self.http.get(url, headers=headers or {}, timeout=self.timeout)
        except requests.RequestException as e:
            raise IntegrationError(f"GET {url} failed: {e}") from e
        return response.status_code, response.elapsed.total_seconds() * 1000


# =============================================================================
# FastAPI dependencies (overridden in tests)
# =============================================================================


def get_aml_client() -> AMLWatcherClient:
    return AMLWatcherClient()


def get_gleif_client() -> GleifClient:
    return GleifClient()


def get_facia_client() -> FaciaClient:
    return FaciaClient()


def get_geoip_client() -> GeoIPClient:
    return GeoIPClient()


def get_http_poster() -> HttpPoster:
    return HttpPoster()
