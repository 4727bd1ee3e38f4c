"""Perpetual monitoring schemas."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class MonitoringType(str, Enum):
    AML = "aml"
    KYB = "kyb"
    AML_KYB = "aml_kyb"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class ScheduleStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"


class ScheduleCreate(BaseModel):
    """A new monitoring schedule for one entity."""

    entity_name: str = Field(..., min_length=1)
    entity_lei: Optional[str] = None
    country: Optional[str] = None
    monitoring_type: MonitoringType = MonitoringType.AML
    frequency: Frequency = Frequency.QUARTERLY
    interval_days: Optional[int] = Field(None, ge=1)
    alert_threshold: int = Field(80, ge=0, le=100)
    notify_emails: list[str] = Field(default_factory=list)
    application_id: Optional[str] = None
    organization_id: Optional[str] = None


class ScheduleStatusUpdate(BaseModel):
    status: ScheduleStatus


class ApplicationMonitoringRequest(BaseModel):
    interval_days: int = Field(90, ge=1)


class MonitoringRun(BaseModel):
    success: bool = True
    schedule_id: str
    checks_performed: int
    alerts_generated: int
    new_alerts: list[dict] = Field(default_factory=list)
    next_check: Optional[str] = None
