"""Case management schemas."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class CasePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SlaStatus(str, Enum):
    ON_TIME = "on_time"
    AT_RISK = "at_risk"
    BREACHED = "breached"


class CaseCreateRequest(BaseModel):
    """Request to open a case, optionally linked to an alert or application."""

    type: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    priority: Optional[CasePriority] = None
    description: Optional[str] = None
    sla_hours: Optional[float] = Field(None, gt=0)
    alert_id: Optional[str] = None
    application_id: Optional[str] = None


class CaseAssignRequest(BaseModel):
    """Request to assign a case to an investigator."""

    assignee_email: str = Field(..., min_length=3)
    notes: Optional[str] = None


class CaseCreated(BaseModel):
    success: bool = True
    case_id: str
    case_number: str
    assigned_to: Optional[str] = None
