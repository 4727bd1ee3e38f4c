"""Notification API endpoints."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User, to_dict

from . import service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    unread_only: bool = False,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """List the caller's notifications, newest first."""
    return {"notifications": [to_dict(n) for n in service.list_for_user(session, user, unread_only)]}


@router.post("/{notification_id}/read")
def mark_notification_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    return to_dict(service.mark_read(session, user, notification_id))
