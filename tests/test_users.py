"""Tests for user invitations."""

import pytest
from sqlmodel import select

from trust_anchor.core.errors import BadRequestError, ForbiddenError
from trust_anchor.core.models import AuditLog, Notification, User
from trust_anchor.users import invite_user
from tests.conftest import auth


class TestInviteUser:
    def test_new_user_is_invited(self, session, admin):
        result = invite_user(session, admin, " New.Person@Acme.test ", "analyst")

        assert result == {
            "success": True,
            "message": "User invited: New.Person@Acme.test",
            "email": "New.Person@Acme.test",
            "role": "analyst",
        }
        user = session.exec(select(User).where(User.email == "new.person@acme.test")).one()
        assert user.status == "invited"
        assert user.role == "analyst"
        assert user.organization_id == admin.organization_id
        assert user.invited_by == admin.email

        assert session.exec(select(Notification)).one().recipient_email == "new.person@acme.test"
        assert session.exec(select(AuditLog)).one().event_type == "user_invited"

    def test_reinvite_refreshes_role(self, session, admin, analyst):
        invite_user(session, admin, analyst.email, "admin")

        session.refresh(analyst)
        assert analyst.role == "admin"
        assert analyst.status == "active"
        assert analyst.invited_at is not None
        assert len(session.exec(select(User)).all()) == 2

    def test_default_role(self, session, admin):
        assert invite_user(session, admin, "x@acme.test", None)["role"] == "user"

    def test_requires_email(self, session, admin):
        with pytest.raises(BadRequestError, match="Email is required"):
            invite_user(session, admin, "  ")

    def test_requires_admin(self, session, analyst):
        with pytest.raises(ForbiddenError):
            invite_user(session, analyst, "x@acme.test")


class TestUsersAPI:
    def test_me(self, client, analyst):
        body = client.get("/users/me", headers=auth(analyst)).json()
        assert body["email"] == analyst.email
        assert body["role"] == "analyst"

    def test_invite(self, client, admin):
        response = client.post("/users/invite", json={"email": "ops@acme.test", "role": "analyst"}, headers=auth(admin))
        assert response.status_code == 200
        assert response.json()["role"] == "analyst"

    def test_invite_forbidden(self, client, analyst):
        response = client.post("/users/invite", json={"email": "ops@acme.test"}, headers=auth(analyst))
        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}
