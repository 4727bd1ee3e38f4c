"""Caller identity and tenant isolation.

Authentication happens upstream: the gateway verifies the session and forwards
the caller's email in ``X-User-Email``. This module only resolves that email to
a ``User`` row and enforces role and organization boundaries.
"""

import logging

from fastapi import Depends, Header
from sqlmodel import Session, select

from trust_anchor.core.database import get_session
from trust_anchor.core.errors import BadRequestError, ForbiddenError, UnauthorizedError
from trust_anchor.core.models import AuditLog, User

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


def resolve_user(session: Session, email: str | None) -> User:
    """Look up the calling user by email."""
    if not email:
        raise UnauthorizedError("Unauthorized")
    user = session.exec(select(User).where(User.email == email.strip().lower())).first()
    if user is None:
        raise UnauthorizedError("Unauthorized")
    return user


def get_current_user(
    x_user_email: str | None = Header(default=None),
    session: Session = Depends(get_session),
) -> User:
    """FastAPI dependency returning the authenticated user."""
    return resolve_user(session, x_user_email)


def is_admin(user: User) -> bool:
    return user.role == ADMIN_ROLE


def require_admin(user: User, message: str = "Admin access required") -> None:
    if not is_admin(user):
        raise ForbiddenError(message)


def enforce_tenant(
    session: Session,
    user: User,
    requested_org_id: str | None,
    resource_type: str | None = None,
) -> dict:
    """Check that ``user`` may act on ``requested_org_id``.

    Admins may access any organization. Everyone else is confined to their own;
    a cross-tenant attempt is written to the audit log before being refused.
    """
    if not requested_org_id:
        raise BadRequestError("Missing organization context")

    if is_admin(user):
        return {"success": True, "allowed": True, "message": "Admin access granted"}

    if user.organization_id != requested_org_id:
        logger.warning(
            "Cross-tenant access attempt by %s to organization %s", user.email, requested_org_id
        )
        session.add(
            AuditLog(
                organization_id=user.organization_id,
                workflow_id="security_check",
                event=f"Unauthorized access attempt to organization {requested_org_id}",
                event_type="access_denied",
                event_category="security",
                actor=user.email,
                actor_email=user.email,
                severity="warning",
                result="denied",
                details={
                    "user_org_id": user.organization_id,
                    "requested_org_id": requested_org_id,
                    "resource_type": resource_type,
                },
            )
        )
        session.commit()
        raise ForbiddenError("Forbidden: Access denied to this organization")

    return {
        "success": True,
        "allowed": True,
        "organization_id": requested_org_id,
        "message": "Multi-tenant isolation check passed",
    }
