"""User invitations."""

import logging

from sqlmodel import Session, select

from trust_anchor.audit.service import record_event
from trust_anchor.core.auth import require_admin
from trust_anchor.core.errors import BadRequestError
from trust_anchor.core.models import User, utcnow
from trust_anchor.notifications.service import create_notification

logger = logging.getLogger(__name__)


def invite_user(session: Session, admin: User, email: str | None, role: str = "user") -> dict:
    """Invite a user into the admin's organization.

    Re-inviting an existing email refreshes its role and invitation stamp.
    """
    require_admin(admin, "Admin access required")
    if not email or not email.strip():
        raise BadRequestError("Email is required")

    email = email.strip()
    role = role or "user"
    normalized = email.lower()
    now = utcnow()

    user = session.exec(select(User).where(User.email == normalized)).first()
    if user is None:
        user = User(
            email=normalized,
            role=role,
            organization_id=admin.organization_id,
            status="invited",
        )
    else:
        user.role = role
        user.updated_date = now
    user.invited_at = now
    user.invited_by = admin.email
    session.add(user)

    create_notification(
        session,
        recipient_email=normalized,
        organization_id=user.organization_id,
        type="user_invited",
        title="You have been invited",
        message=f"{admin.email} invited you to join as {role}.",
        action_url="/",
    )
    record_event(
        session,
        event=f"User invited: {normalized}",
        event_type="user_invited",
        actor=admin.email,
        organization_id=admin.organization_id,
        details={"email": normalized, "role": role},
    )
    session.commit()
    logger.info("%s invited %s as %s", admin.email, normalized, role)

    return {"success": True, "message": f"User invited: {email}", "email": email, "role": role}
