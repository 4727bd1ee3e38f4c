"""Webhooks domain - signed outbound event delivery."""

from .router import router
from .schemas import DeliveryResult, DispatchRequest, WebhookCreateRequest
from .service import create_org_webhook, dispatch_event, generate_secret, sign_body, send_test_event

__all__ = [
    "router",
    "DeliveryResult",
    "DispatchRequest",
    "WebhookCreateRequest",
    "create_org_webhook",
    "dispatch_event",
    "generate_secret",
    "sign_body",
    "send_test_event",
]
