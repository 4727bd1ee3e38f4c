"""Pytest fixtures for test suite."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from trust_anchor.core.database import get_engine, init_db, reset_engine, set_db_path
from trust_anchor.core.errors import IntegrationError
from trust_anchor.core.models import Organization, TMaaSConfig, User
from trust_anchor.main import app
from trust_anchor.providers.clients import (
    get_aml_client,
    get_facia_client,
    get_geoip_client,
    get_gleif_client,
    get_http_poster,
)


# =============================================================================
# Fake provider gateways
# =============================================================================


class FakeAMLClient:
    """Stands in for AML Watcher; records every call."""

    def __init__(self):
        self.configured = True
        self.transaction_result = {"risk_score": 0, "matches": []}
        self.business_result = {"screening_id": "scr-1", "risk_level": "low", "matches": []}
        self.search_result = {"data": {"matches": []}}
        self.error: str | None = None
        self.calls: list[tuple] = []

    def screen_transaction(self, name, country, amount):
        self.calls.append(("screen_transaction", name, country, amount))
        if self.error:
            raise IntegrationError(self.error)
        return self.transaction_result

    def screen_business(self, entity_name, country, registration_number=None, screening_type="enhanced"):
        self.calls.append(("screen_business", entity_name, country, registration_number))
        if self.error:
            raise IntegrationError(self.error)
        return self.business_result

    def search(self, name, categories, match_score):
        self.calls.append(("search", name, match_score))
        if self.error:
            raise IntegrationError(self.error)
        return self.search_result


def gleif_record(name, entity_status="ACTIVE", registration_status="ISSUED", country="SG"):
    """A GLEIF /lei-records/{lei} response body."""
    return {
        "data": {
            "attributes": {
                "entity": {"legalName": {"name": name}, "status": entity_status, "legalAddress": {"country": country}},
                "registration": {"status": registration_status},
            }
        }
    }


class FakeGleifClient:
    def __init__(self):
        self.searches: list[str] = []
        self.lookups: list[str] = []
        self.record = gleif_record("NewCo Ltd")

    def search(self, name):
        self.searches.append(name)
        return {"data": [{"id": "5493001KJTIIGC8Y1R12", "attributes": {"entity": {"legalName": name}}}]}

    def get_details(self, lei):
        self.lookups.append(lei)
        return self.record


class FakeFaciaClient:
    def __init__(self):
        self.matches: list[tuple] = []

    def face_match(self, face_frame, id_frame, client_reference):
        self.matches.append((face_frame, id_frame, client_reference))
        return {"result": "match", "score": 0.97}


class FakeGeoIPClient:
    def __init__(self):
        self.result = {"country": "United Kingdom", "countryCode": "GB", "city": "London", "isp": "BT"}
        self.error: str | None = None
        self.lookups: list[str] = []

    def lookup(self, ip_address):
        self.lookups.append(ip_address)
        if self.error:
            raise IntegrationError(self.error)
        return self.result


class FakePoster:
    """Captures outbound HTTP calls instead of sending them."""

    def __init__(self):
        self.status_code = 200
        self.error: str | None = None
        self.posts: list[dict] = []
        self.statuses: dict[str, int] = {}
        self.unreachable: set[str] = set()
        self.checks: list[dict] = []

    def post(self, url, body, headers=None):
        self.posts.append({"url": url, "body": body, "headers": headers or {}})
        if self.error:
            raise IntegrationError(self.error)
        return self.status_code

    def check(self, url, headers=None):
        self.checks.append({"url": url, "headers": headers or {}})
        if url in self.unreachable:
            raise IntegrationError(f"GET {url} failed: connection refused")
        return self.statuses.get(url, 200), 42.0


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def temp_database(tmp_path: Path):
    """Use a temporary database for each test."""
    db_path = tmp_path / "test.db"
    set_db_path(db_path)
    init_db()
    yield db_path
    reset_engine()


@pytest.fixture
def session(temp_database) -> Session:
    with Session(get_engine()) as session:
        yield session


# =============================================================================
# Tenant Fixtures
# =============================================================================


@pytest.fixture
def org(session: Session) -> Organization:
    organization = Organization(name="Acme Payments", country="GB")
    session.add(organization)
    session.commit()
    session.refresh(organization)
    return organization


@pytest.fixture
def other_org(session: Session) -> Organization:
    organization = Organization(name="Globex", country="US")
    session.add(organization)
    session.commit()
    session.refresh(organization)
    return organization


def make_user(session: Session, email: str, role: str, organization_id: str | None) -> User:
    user = User(email=email, full_name=email.split("@")[0].title(), role=role, organization_id=organization_id)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def admin(session: Session, org: Organization) -> User:
    return make_user(session, "admin@acme.test", "admin", org.id)


@pytest.fixture
def analyst(session: Session, org: Organization) -> User:
    return make_user(session, "analyst@acme.test", "analyst", org.id)


@pytest.fixture
def outsider(session: Session, other_org: Organization) -> User:
    return make_user(session, "analyst@globex.test", "analyst", other_org.id)


@pytest.fixture
def tmaas_config(session: Session, org: Organization) -> TMaaSConfig:
    config = TMaaSConfig(organization_id=org.id, processor_name="Stripe", monitoring_rules={})
    session.add(config)
    session.commit()
    session.refresh(config)
    return config


def auth(user: User) -> dict[str, str]:
    """Request headers identifying ``user``."""
    return {"X-User-Email": user.email}


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def aml() -> FakeAMLClient:
    return FakeAMLClient()


@pytest.fixture
def gleif() -> FakeGleifClient:
    return FakeGleifClient()


@pytest.fixture
def facia() -> FakeFaciaClient:
    return FakeFaciaClient()


@pytest.fixture
def geoip() -> FakeGeoIPClient:
    return FakeGeoIPClient()


@pytest.fixture
def poster() -> FakePoster:
    return FakePoster()


@pytest.fixture
def client(aml, gleif, facia, poster, geoip) -> TestClient:
    """API client with outbound providers replaced by fakes."""
    app.dependency_overrides[get_aml_client] = lambda: aml
    app.dependency_overrides[get_gleif_client] = lambda: gleif
    app.dependency_overrides[get_facia_client] = lambda: facia
    app.dependency_overrides[get_http_poster] = lambda: poster
    app.dependency_overrides[get_geoip_client] = lambda: geoip
    yield TestClient(app)
    app.dependency_overrides.clear()
