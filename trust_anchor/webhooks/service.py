"""
Outbound webhooks.

Each delivery is a JSON POST signed with the webhook's secret:
``X-Webhook-Signature`` carries the hex HMAC-SHA256 of the exact request body
and ``X-Webhook-Event`` the event type.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
from urllib.parse import urlparse

from sqlmodel import Session, select

from trust_anchor.audit.service import record_event
from trust_anchor.core.auth import enforce_tenant, is_admin
from trust_anchor.core.errors import BadRequestError, IntegrationError, NotFoundError
from trust_anchor.core.models import User, Webhook, to_dict, utcnow
from trust_anchor.providers.clients import HttpPoster

from .schemas import DeliveryResult

logger = logging.getLogger(__name__)

TEST_EVENT = "webhook.test"


def generate_secret() -> str:
    return f"wh_{secrets.token_hex(16)}"


def sign_body(secret: str | None, body: str) -> str:
    return hmac.new((secret or "").encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def create_org_webhook(
    session: Session,
    user: User,
    organization_id: str | None,
    url: str | None,
    event_types: list[str] | None,
) -> dict:
    """Register a webhook for an organization."""
    if not organization_id or not url or not event_types:
        raise BadRequestError("Missing required parameters")
    if not is_valid_url(url):
        raise BadRequestError("Invalid webhook URL")
    enforce_tenant(session, user, organization_id, "Webhook")

    now = utcnow()
    webhook = Webhook(
        organization_id=organization_id,
        url=url,
        event_types=list(event_types),
        partner_name=f"Webhook-{int(now.timestamp() * 1000)}",
        is_active=True,
        last_status="pending",
        secret_key=generate_secret(),
    )
    session.add(webhook)
    session.flush()

    record_event(
        session,
        event=f"Webhook created for {', '.join(event_types)}",
        event_type="webhook_created",
        actor=user.email,
        workflow_id=webhook.id,
        organization_id=organization_id,
        details={"organization_id": organization_id, "webhook_url": url, "event_types": event_types},
    )
    session.commit()
    session.refresh(webhook)

    return {"success": True, "webhook": to_dict(webhook), "message": "Webhook created successfully"}


def deliver(
    session: Session,
    poster: HttpPoster,
    webhook: Webhook,
    event_type: str,
    workflow_id: str | None = None,
    application_id: str | None = None,
    data: dict | None = None,
) -> DeliveryResult:
    """POST one signed event to one webhook and stamp the outcome on it."""
    payload = {
        "event": event_type,
        "timestamp": utcnow().isoformat(),
        "workflow_id": workflow_id,
        "application_id": application_id,
        "data": data or {},
    }
    body = json.dumps(payload)
    headers = {
        "X-Webhook-Signature": sign_body(webhook.secret_key, body),
        "X-Webhook-Event": event_type,
    }

    try:
        status_code = poster.post(webhook.url, body, headers)
    except IntegrationError as e:
        logger.warning("Webhook %s delivery failed: %s", webhook.id, e.message)
        result = DeliveryResult(webhook_id=webhook.id, url=webhook.url, success=False, error=e.message)
    else:
        result = DeliveryResult(
            webhook_id=webhook.id, url=webhook.url, success=200 <= status_code < 300, status=status_code
        )

    now = utcnow()
    if result.success:
        webhook.last_triggered = now
        webhook.last_status = "success"
    else:
        webhook.last_status = "failed"
    webhook.updated_date = now
    session.add(webhook)
    return result


def dispatch_event(
    session: Session,
    poster: HttpPoster,
    event_type: str,
    workflow_id: str | None = None,
    application_id: str | None = None,
    data: dict | None = None,
    organization_id: str | None = None,
) -> dict:
    """Send an event to every active webhook subscribed to it.

    With ``organization_id`` set only that organization's webhooks receive it.
    """
    query = select(Webhook).where(Webhook.is_active == True)  # noqa: E712
    if organization_id is not None:
        query = query.where(Webhook.organization_id == organization_id)

    results = [
        deliver(session, poster, webhook, event_type, workflow_id, application_id, data)
        for webhook in session.exec(query).all()
        if event_type in (webhook.event_types or [])
    ]
    session.commit()
    return {"status": "success", "results": [r.model_dump() for r in results]}


def send_test_event(session: Session, user: User, poster: HttpPoster, webhook_id: str) -> dict:
    """Send a ``webhook.test`` event to a single webhook."""
    webhook = session.get(Webhook, webhook_id)
    if webhook is None:
        raise NotFoundError("Webhook not found")
    enforce_tenant(session, user, webhook.organization_id, "Webhook")

    result = deliver(session, poster, webhook, TEST_EVENT, data={"message": "Test delivery"})
    session.commit()
    return result.model_dump()


def list_webhooks(session: Session, user: User) -> list[Webhook]:
    query = select(Webhook)
    if not is_admin(user):
        query = query.where(Webhook.organization_id == user.organization_id)
    return list(session.exec(query.order_by(Webhook.created_date.desc())).all())
