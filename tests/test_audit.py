"""Tests for audit logging and retention."""

from datetime import timedelta

import pytest
from sqlmodel import select

from trust_anchor.audit import service
from trust_anchor.core.errors import ForbiddenError
from trust_anchor.core.models import AuditLog, utcnow
from tests.conftest import auth


def old_event(session, org_id, days):
    log = AuditLog(
        organization_id=org_id,
        event="Old event",
        event_type="test",
        created_date=utcnow() - timedelta(days=days),
    )
    session.add(log)
    session.commit()
    return log


class TestArchive:
    def test_requires_admin(self, session, analyst):
        with pytest.raises(ForbiddenError):
            service.archive_old_logs(session, analyst, retention_days=1)

    def test_archives_logs_past_retention(self, session, admin, org):
        stale = old_event(session, org.id, days=10)
        fresh = old_event(session, org.id, days=1)

        result = service.archive_old_logs(session, admin, retention_days=5)

        assert result["archived"] == 1
        assert result["failed"] == 0
        session.refresh(stale)
        session.refresh(fresh)
        assert stale.is_archived is True
        assert stale.archive_location == f"archive/{stale.archived_at.year}/{stale.id}"
        assert fresh.is_archived is False

        run = session.exec(select(AuditLog).where(AuditLog.event_type == "audit_archival")).one()
        assert run.details["archived_count"] == 1
        assert run.actor_email == admin.email

    def test_default_retention_keeps_recent_logs(self, session, admin, org):
        old_event(session, org.id, days=30)
        assert service.archive_old_logs(session, admin)["archived"] == 0


class TestAuditAPI:
    def test_archived_logs_hidden_by_default(self, client, admin, session, org):
        old_event(session, org.id, days=10)
        client.post("/audit/archive", json={"retention_days": 5}, headers=auth(admin))

        visible = client.get("/audit/logs", headers=auth(admin)).json()["logs"]
        assert [log["event_type"] for log in visible] == ["audit_archival"]

        everything = client.get("/audit/logs?include_archived=true", headers=auth(admin)).json()["logs"]
        assert len(everything) == 2

    def test_logs_are_tenant_scoped(self, client, analyst, outsider, session):
        old_event(session, outsider.organization_id, days=1)
        assert client.get("/audit/logs", headers=auth(analyst)).json()["logs"] == []
        assert len(client.get("/audit/logs", headers=auth(outsider)).json()["logs"]) == 1

    def test_archive_forbidden_for_analyst(self, client, analyst):
        response = client.post("/audit/archive", json={}, headers=auth(analyst))
        assert response.status_code == 403
        assert response.json() == {"error": "Unauthorized"}
