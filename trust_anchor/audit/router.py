"""Audit log API endpoints."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User, to_dict

from . import service
from .schemas import ArchiveRequest

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/logs")
def list_audit_logs(
    workflow_id: str | None = None,
    include_archived: bool = False,
    limit: int = 100,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """List audit events, newest first."""
    logs = service.list_events(
        session, user, workflow_id=workflow_id, include_archived=include_archived, limit=limit
    )
    return {"logs": [to_dict(log) for log in logs]}


@router.post("/archive")
def archive_audit_logs(
    request: ArchiveRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Archive audit logs older than the retention window (admin only)."""
    return service.archive_old_logs(session, user, retention_days=request.retention_days)
