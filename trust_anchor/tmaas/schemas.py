"""
TMaaS (transaction monitoring as a service) schemas.

Required fields are checked by the service so that a missing field surfaces
as the standard ``{"error": ...}`` 400 rather than a validation error.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class TransactionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    BLOCKED = "blocked"
    FLAGGED = "flagged"
    REJECTED = "rejected"


class ScreenTransactionRequest(BaseModel):
    """An incoming transaction to screen."""

    transaction_id: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    type: Optional[str] = None
    from_account: Optional[str] = None
    to_account: Optional[str] = None
    counterparty_name: Optional[str] = None
    counterparty_country: Optional[str] = None
    ip_address: Optional[str] = None
    device_fingerprint: Optional[str] = None
    user_id: Optional[str] = None


class EnrichmentRequest(BaseModel):
    """Inputs for enriching a transaction ahead of rule evaluation."""

    transaction_id: Optional[str] = None
    ip_address: Optional[str] = None
    counterparty_name: Optional[str] = None
    from_account: Optional[str] = None


class ScreeningResult(BaseModel):
    success: bool = True
    transaction_id: str
    status: str
    risk_score: int
    action: str


class StatusUpdateRequest(BaseModel):
    """Manual review decision for a screened transaction."""

    new_status: Optional[TransactionStatus] = None
    resolution_notes: Optional[str] = None
    escalate_to_case: bool = False


class AnalyticsRequest(BaseModel):
    days: int = Field(30, ge=1, le=3650)
    tmaas_config_id: Optional[str] = None


class AnalyticsResponse(BaseModel):
    success: bool = True
    timestamp: str
    analytics: dict[str, Any] = Field(default_factory=dict)
    message: Optional[str] = None
