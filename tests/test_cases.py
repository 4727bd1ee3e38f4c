"""Tests for case creation, assignment, and SLA tracking."""

import re
from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from trust_anchor.cases import service
from trust_anchor.core.errors import BadRequestError, ForbiddenError, NotFoundError
from trust_anchor.core.models import AMLAlert, AuditLog, Case, CaseNote, Notification, utcnow
from tests.conftest import auth, make_user


T0 = datetime(2026, 1, 1, 9, 0, 0)


def sla_case(**fields) -> Case:
    fields.setdefault("created_date", T0)
    return Case(case_number="CASE-1", type="aml_review", subject="Review", **fields)


class TestCaseNumber:
    def test_format(self):
        assert re.match(r"^CASE-\d+-[A-Z0-9]{5}$", service.generate_case_number())

    def test_numbers_differ(self):
        assert service.generate_case_number() != service.generate_case_number()


class TestSlaStatus:
    def test_no_due_date_is_on_time(self):
        assert service.compute_sla_status(sla_case(), T0) == "on_time"

    def test_on_time(self):
        case = sla_case(sla_due_date=T0 + timedelta(hours=24))
        assert service.compute_sla_status(case, T0 + timedelta(hours=1)) == "on_time"

    def test_at_risk_in_last_quarter(self):
        case = sla_case(sla_due_date=T0 + timedelta(hours=24))
        assert service.compute_sla_status(case, T0 + timedelta(hours=20)) == "at_risk"

    def test_breached_after_due_date(self):
        case = sla_case(sla_due_date=T0 + timedelta(hours=24))
        assert service.compute_sla_status(case, T0 + timedelta(hours=25)) == "breached"

    def test_refresh_updates_open_cases_only(self, session, org):
        past = utcnow() - timedelta(hours=48)
        session.add(sla_case(organization_id=org.id, created_date=past, sla_due_date=past + timedelta(hours=24)))
        session.add(
            Case(
                organization_id=org.id,
                case_number="CASE-2",
                type="aml_review",
                subject="Closed",
                status="closed",
                created_date=past,
                sla_due_date=past + timedelta(hours=24),
            )
        )
        session.commit()

        assert service.refresh_sla_status(session, org.id) == 1
        statuses = {c.subject: c.sla_status for c in session.exec(select(Case)).all()}
        assert statuses == {"Review": "breached", "Closed": "on_time"}


class TestCreateCase:
    def test_requires_type_and_subject(self, session):
        with pytest.raises(BadRequestError):
            service.create_case(session, type="", subject="x")

    def test_defaults(self, session, org):
        case = service.create_case(session, type="manual_review", subject="Check", organization_id=org.id)

        assert case.priority == "medium"
        assert case.status == "new"
        assert case.tags == ["manual_review", "medium"]
        assert case.sla_status == "on_time"
        assert (case.sla_due_date - case.created_date) == timedelta(hours=24)
        assert case.assigned_to is None

    def test_context_copied_from_alert(self, session, org):
        alert = AMLAlert(organization_id=org.id, type="pep_match", severity="high", details={"name": "Jane"})
        session.add(alert)
        session.commit()

        case = service.create_case(session, type="aml_review", subject="PEP hit", alert_id=alert.id)

        assert case.organization_id == org.id
        assert case.related_entity_type == "AMLAlert"
        assert case.related_entity_id == alert.id
        assert case.context_data["details"] == {"name": "Jane"}

    def test_auto_assign_balances_load(self, session, admin, analyst):
        first = service.create_case(session, type="aml_review", subject="One", organization_id=admin.organization_id)
        second = service.create_case(session, type="aml_review", subject="Two", organization_id=admin.organization_id)
        third = service.create_case(session, type="aml_review", subject="Three", organization_id=admin.organization_id)

        assert first.assigned_to == "admin@acme.test"
        assert second.assigned_to == "analyst@acme.test"
        assert third.assigned_to == "admin@acme.test"
        assert first.status == "assigned"
        assert first.assigned_by == "system"

        notified = session.exec(select(Notification).where(Notification.type == "case_assigned")).all()
        assert len(notified) == 3

    def test_plain_users_are_not_reviewers(self, session, org):
        make_user(session, "viewer@acme.test", "user", org.id)
        case = service.create_case(session, type="aml_review", subject="One", organization_id=org.id)
        assert case.assigned_to is None


class TestAssignCase:
    @pytest.fixture
    def case(self, session, org):
        return service.create_case(
            session, type="aml_review", subject="Review", organization_id=org.id, auto_assign=False
        )

    def test_requires_admin(self, session, analyst, case):
        with pytest.raises(ForbiddenError):
            service.assign_case(session, analyst, case.id, analyst.email)

    def test_unknown_case(self, session, admin):
        with pytest.raises(NotFoundError):
            service.assign_case(session, admin, "missing", admin.email)

    def test_assignee_must_share_organization(self, session, admin, outsider, case):
        with pytest.raises(NotFoundError, match="Assignee not found"):
            service.assign_case(session, admin, case.id, outsider.email)

    def test_assignment_side_effects(self, session, admin, analyst, case):
        updated = service.assign_case(session, admin, case.id, "Analyst@Acme.test", notes="Please review")

        assert updated.status == "assigned"
        assert updated.assigned_to == analyst.email
        assert updated.assigned_by == admin.email

        note = session.exec(select(CaseNote).where(CaseNote.case_id == case.id)).one()
        assert note.note_type == "assignment"
        assert note.content == "Please review"

        notification = session.exec(select(Notification)).one()
        assert notification.recipient_email == analyst.email
        assert notification.priority == "high"

        event = session.exec(select(AuditLog).where(AuditLog.event_type == "case_assigned")).one()
        assert event.workflow_id == case.id
        assert event.details["assignee"] == analyst.email


class TestCasesAPI:
    def test_create_and_list(self, client, analyst):
        response = client.post(
            "/cases",
            json={"type": "manual_review", "subject": "Suspicious onboarding", "priority": "high"},
            headers=auth(analyst),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["assigned_to"] == analyst.email

        cases = client.get("/cases", headers=auth(analyst)).json()["cases"]
        assert [c["case_number"] for c in cases] == [body["case_number"]]
        assert cases[0]["priority"] == "high"

    def test_foreign_alert_is_not_found(self, client, session, org, outsider):
        alert = AMLAlert(organization_id=org.id, type="pep_match", severity="high", details={"name": "Jane"})
        session.add(alert)
        session.commit()

        response = client.post(
            "/cases",
            json={"type": "aml_review", "subject": "Peek", "alert_id": alert.id},
            headers=auth(outsider),
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Alert not found"}
        assert session.exec(select(Case)).all() == []

    def test_admin_case_follows_alert_organization(self, client, session, admin, other_org):
        alert = AMLAlert(organization_id=other_org.id, type="pep_match", severity="high")
        session.add(alert)
        session.commit()

        response = client.post(
            "/cases", json={"type": "aml_review", "subject": "Globex PEP", "alert_id": alert.id}, headers=auth(admin)
        )

        case = session.get(Case, response.json()["case_id"])
        assert case.organization_id == other_org.id
        assert case.context_data["id"] == alert.id

    def test_list_is_tenant_scoped(self, client, analyst, outsider):
        client.post("/cases", json={"type": "manual_review", "subject": "Acme"}, headers=auth(analyst))
        assert client.get("/cases", headers=auth(outsider)).json()["cases"] == []

    def test_assign_requires_admin(self, client, analyst):
        case_id = client.post(
            "/cases", json={"type": "manual_review", "subject": "Acme"}, headers=auth(analyst)
        ).json()["case_id"]

        response = client.post(
            f"/cases/{case_id}/assign", json={"assignee_email": analyst.email}, headers=auth(analyst)
        )
        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden: Admin access required"}

    def test_sla_refresh(self, client, admin):
        response = client.post("/cases/sla/refresh", headers=auth(admin))
        assert response.json() == {"success": True, "updated": 0}
