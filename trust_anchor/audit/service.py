"""Audit log recording and retention."""

import logging
from datetime import timedelta
from typing import Any

from sqlmodel import Session, select

from trust_anchor.core.auth import require_admin
from trust_anchor.core.config import get_settings
from trust_anchor.core.models import AuditLog, User, utcnow

logger = logging.getLogger(__name__)


def record_event(
    session: Session,
    event: str,
    event_type: str,
    actor: str | None = None,
    details: dict[str, Any] | None = None,
    workflow_id: str | None = None,
    organization_id: str | None = None,
    **extra: Any,
) -> AuditLog:
    """Append an audit event. The caller owns the commit."""
    log = AuditLog(
        event=event,
        event_type=event_type,
        actor=actor,
        details=details or {},
        workflow_id=workflow_id,
        organization_id=organization_id,
        **extra,
    )
    session.add(log)
    return log


def list_events(
    session: Session,
    user: User,
    workflow_id: str | None = None,
    include_archived: bool = False,
    limit: int = 100,
) -> list[AuditLog]:
    """List audit events visible to the caller, newest first."""
    query = select(AuditLog)
    if user.role != "admin":
        query = query.where(AuditLog.organization_id == user.organization_id)
    if workflow_id:
        query = query.where(AuditLog.workflow_id == workflow_id)
    if not include_archived:
        query = query.where(AuditLog.is_archived == False)  # noqa: E712
    query = query.order_by(AuditLog.created_date.desc()).limit(limit)
    return list(session.exec(query).all())


def archive_old_logs(
    session: Session,
    user: User,
    retention_days: int | None = None,
) -> dict:
    """Mark audit logs older than the retention window as archived.

    The archival run itself is recorded as an audit event.
    """
    require_admin(user, "Unauthorized")

    if retention_days is None:
        retention_days = get_settings().audit_retention_days

    now = utcnow()
    cutoff = now - timedelta(days=retention_days)

    old_logs = session.exec(
        select(AuditLog).where(
            AuditLog.is_archived == False,  # noqa: E712
            AuditLog.created_date < cutoff,
        )
    ).all()

    for log in old_logs:
        log.is_archived = True
        log.archived_at = now
        log.archive_location = f"archive/{now.year}/{log.id}"
        log.updated_date = now
        session.add(log)

    archived = len(old_logs)

    record_event(
        session,
        event="Automated audit log archival",
        event_type="audit_archival",
        event_category="system_configuration",
        actor="System",
        actor_email=user.email,
        details={
            "archived_count": archived,
            "cutoff_date": cutoff.isoformat(),
            "retention_days": retention_days,
        },
        result="success",
    )
    session.commit()

    logger.info("Archived %d audit logs older than %s", archived, cutoff.isoformat())

    return {
        "success": True,
        "archived": archived,
        "failed": 0,
        "errors": [],
        "cutoff_date": cutoff.isoformat(),
    }
