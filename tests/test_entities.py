"""Tests for the tenant-scoped entity store."""

import pytest
from sqlmodel import select

from trust_anchor.core.models import AuditLog, Provider, Transaction, Webhook
from tests.conftest import auth


def add_tx(session, org_id, transaction_id, amount, status="pending"):
    tx = Transaction(organization_id=org_id, transaction_id=transaction_id, amount=amount, status=status)
    session.add(tx)
    session.commit()
    session.refresh(tx)
    return tx


class TestListRecords:
    def test_filters_and_sorting(self, client, session, analyst):
        add_tx(session, analyst.organization_id, "t1", 300, "flagged")
        add_tx(session, analyst.organization_id, "t2", 100, "flagged")
        add_tx(session, analyst.organization_id, "t3", 200, "approved")

        flagged = client.get("/entities/Transaction?status=flagged&sort=amount", headers=auth(analyst)).json()
        assert [r["transaction_id"] for r in flagged] == ["t2", "t1"]

        top = client.get("/entities/Transaction?sort=-amount&limit=2", headers=auth(analyst)).json()
        assert [r["amount"] for r in top] == [300, 200]

    def test_numeric_filter_is_coerced(self, client, session, analyst):
        add_tx(session, analyst.organization_id, "t1", 300)
        add_tx(session, analyst.organization_id, "t2", 100)
        rows = client.get("/entities/Transaction?amount=100", headers=auth(analyst)).json()
        assert [r["transaction_id"] for r in rows] == ["t2"]

    def test_tenant_scoped(self, client, session, analyst, outsider):
        add_tx(session, outsider.organization_id, "foreign", 100)
        assert client.get("/entities/Transaction", headers=auth(analyst)).json() == []

    def test_admin_sees_all_tenants(self, client, session, admin, outsider):
        add_tx(session, outsider.organization_id, "foreign", 100)
        assert len(client.get("/entities/Transaction", headers=auth(admin)).json()) == 1

    def test_organizations_limited_to_own(self, client, analyst, other_org):
        rows = client.get("/entities/Organization", headers=auth(analyst)).json()
        assert [r["id"] for r in rows] == [analyst.organization_id]

    def test_unknown_entity(self, client, analyst):
        response = client.get("/entities/Spaceship", headers=auth(analyst))
        assert response.status_code == 404
        assert response.json() == {"error": "Unknown entity: Spaceship"}

    def test_unknown_filter_field(self, client, analyst):
        response = client.get("/entities/Transaction?colour=red", headers=auth(analyst))
        assert response.status_code == 400
        assert response.json() == {"error": "Unknown field: colour"}

    def test_json_field_filter_rejected(self, client, analyst):
        response = client.get("/entities/Transaction?flags=blocked", headers=auth(analyst))
        assert response.status_code == 400

    def test_unknown_sort_field(self, client, analyst):
        response = client.get("/entities/Transaction?sort=-colour", headers=auth(analyst))
        assert response.status_code == 400

    def test_limit_bounds(self, client, analyst):
        assert client.get("/entities/Transaction?limit=0", headers=auth(analyst)).status_code == 422


class TestWriteRecords:
    def test_create_forces_own_organization(self, client, analyst, other_org):
        response = client.post(
            "/entities/Transaction",
            json={"transaction_id": "t1", "amount": 10, "organization_id": other_org.id, "id": "chosen"},
            headers=auth(analyst),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["organization_id"] == analyst.organization_id
        assert body["id"] != "chosen"
        assert body["status"] == "pending"

    def test_create_rejects_unknown_fields(self, client, analyst):
        response = client.post("/entities/Transaction", json={"transaction_id": "t1", "colour": "red"}, headers=auth(analyst))
        assert response.status_code == 400
        assert response.json() == {"error": "Unknown fields: colour"}

    def test_global_entities_need_admin(self, client, analyst):
        response = client.post("/entities/Provider", json={"name": "GLEIF", "service_type": "lei"}, headers=auth(analyst))
        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required to modify Provider"}

    def test_admin_creates_user_with_normalized_email(self, client, admin):
        body = client.post("/entities/User", json={"email": " New@Acme.TEST "}, headers=auth(admin)).json()
        assert body["email"] == "new@acme.test"

    def test_update(self, client, session, analyst):
        tx = add_tx(session, analyst.organization_id, "t1", 100)

        body = client.patch(
            f"/entities/Transaction/{tx.id}", json={"status": "approved", "flags": ["reviewed"]}, headers=auth(analyst)
        ).json()

        assert body["status"] == "approved"
        assert body["flags"] == ["reviewed"]
        assert body["updated_date"] != body["created_date"]

    def test_update_immutable_fields(self, client, session, analyst):
        tx = add_tx(session, analyst.organization_id, "t1", 100)
        response = client.patch(f"/entities/Transaction/{tx.id}", json={"id": "other"}, headers=auth(analyst))
        assert response.status_code == 400
        assert response.json() == {"error": "Immutable fields: id"}

    def test_update_other_tenant(self, client, session, analyst, outsider):
        tx = add_tx(session, outsider.organization_id, "t1", 100)
        response = client.patch(f"/entities/Transaction/{tx.id}", json={"status": "approved"}, headers=auth(analyst))
        assert response.status_code == 404

    def test_delete_returns_snapshot(self, client, session, analyst):
        tx = add_tx(session, analyst.organization_id, "t1", 100)

        deleted = client.delete(f"/entities/Transaction/{tx.id}", headers=auth(analyst)).json()

        assert deleted["id"] == tx.id
        assert deleted["transaction_id"] == "t1"
        assert client.get(f"/entities/Transaction/{tx.id}", headers=auth(analyst)).status_code == 404

    def test_requires_identity(self, client):
        response = client.get("/entities/Transaction")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}


class TestProtectedRecords:
    @pytest.fixture
    def provider(self, session):
        provider = Provider(
            name="AML Watcher", service_type="aml", api_key="live-key", client_id="cid", client_secret="shh"
        )
        session.add(provider)
        session.commit()
        session.refresh(provider)
        return provider

    def test_provider_credentials_masked_for_non_admins(self, client, analyst, provider):
        listed = client.get("/entities/Provider", headers=auth(analyst)).json()
        single = client.get(f"/entities/Provider/{provider.id}", headers=auth(analyst)).json()

        for body in (listed[0], single):
            assert body["api_key"] == "***"
            assert body["client_id"] == "***"
            assert body["client_secret"] == "***"
            assert body["name"] == "AML Watcher"

    def test_provider_credentials_not_filterable(self, client, analyst, provider):
        response = client.get("/entities/Provider?api_key=live-key", headers=auth(analyst))
        assert response.status_code == 400

    def test_admin_sees_provider_credentials(self, client, admin, provider):
        body = client.get(f"/entities/Provider/{provider.id}", headers=auth(admin)).json()
        assert body["api_key"] == "live-key"
        assert body["client_secret"] == "shh"

    def test_audit_log_is_admin_only_for_writes(self, client, session, analyst):
        entry = AuditLog(organization_id=analyst.organization_id, event="Login", event_type="login", actor="x")
        session.add(entry)
        session.commit()

        patched = client.patch(f"/entities/AuditLog/{entry.id}", json={"event": "Nothing"}, headers=auth(analyst))
        deleted = client.delete(f"/entities/AuditLog/{entry.id}", headers=auth(analyst))
        created = client.post("/entities/AuditLog", json={"event": "Forged", "event_type": "login"}, headers=auth(analyst))

        for response in (patched, deleted, created):
            assert response.status_code == 403
            assert response.json() == {"error": "Admin access required to modify AuditLog"}
        session.refresh(entry)
        assert entry.event == "Login"

    def test_webhook_create_is_validated_and_signed(self, client, session, analyst):
        response = client.post(
            "/entities/Webhook",
            json={"url": "https://hooks.acme.test/tas", "event_types": ["aml_alert"], "secret_key": "mine"},
            headers=auth(analyst),
        )

        assert response.status_code == 201
        webhook = session.get(Webhook, response.json()["id"])
        assert webhook.organization_id == analyst.organization_id
        assert webhook.secret_key.startswith("wh_")
        assert session.exec(select(AuditLog).where(AuditLog.event_type == "webhook_created")).one()

    def test_webhook_create_rejects_bad_url(self, client, analyst):
        response = client.post(
            "/entities/Webhook", json={"url": "ftp://nope", "event_types": ["aml_alert"]}, headers=auth(analyst)
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid webhook URL"}

    def test_webhook_secret_and_url_guarded_on_update(self, client, session, analyst):
        webhook = Webhook(
            organization_id=analyst.organization_id,
            url="https://hooks.acme.test/tas",
            event_types=["aml_alert"],
            secret_key="wh_original",
        )
        session.add(webhook)
        session.commit()

        secret = client.patch(f"/entities/Webhook/{webhook.id}", json={"secret_key": "x"}, headers=auth(analyst))
        url = client.patch(f"/entities/Webhook/{webhook.id}", json={"url": "not a url"}, headers=auth(analyst))

        assert secret.status_code == 400
        assert secret.json() == {"error": "Immutable fields: secret_key"}
        assert url.status_code == 400
        session.refresh(webhook)
        assert webhook.secret_key == "wh_original"
