"""Webhook API endpoints."""

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user, is_admin
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User, to_dict
from trust_anchor.providers.clients import HttpPoster, get_http_poster

from . import service
from .schemas import DispatchRequest, WebhookCreateRequest

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.get("")
def list_webhooks(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    return {"webhooks": [to_dict(w) for w in service.list_webhooks(session, user)]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_webhook(
    request: WebhookCreateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Register an organization webhook. The signing secret is generated server-side."""
    return service.create_org_webhook(
        session,
        user,
        request.organization_id or user.organization_id,
        request.url,
        request.event_types,
    )


@router.post("/dispatch")
def dispatch(
    request: DispatchRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    poster: HttpPoster = Depends(get_http_poster),
) -> dict:
    """Send an event to the subscribed webhooks."""
    return service.dispatch_event(
        session,
        poster,
        request.event_type,
        request.workflow_id,
        request.application_id,
        request.data,
        organization_id=None if is_admin(user) else user.organization_id,
    )


@router.post("/{webhook_id}/test")
def send_test_webhook(
    webhook_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    poster: HttpPoster = Depends(get_http_poster),
) -> dict:
    return service.send_test_event(session, user, poster, webhook_id)
