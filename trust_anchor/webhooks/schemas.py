"""Webhook schemas."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class WebhookCreateRequest(BaseModel):
    organization_id: Optional[str] = None
    url: Optional[str] = None
    event_types: list[str] = Field(default_factory=list)


class DispatchRequest(BaseModel):
    """An event to fan out to subscribed webhooks."""

    event_type: str = Field(..., min_length=1)
    workflow_id: Optional[str] = None
    application_id: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)


class DeliveryResult(BaseModel):
    webhook_id: str
    url: str
    success: bool
    status: Optional[int] = None
    error: Optional[str] = None
