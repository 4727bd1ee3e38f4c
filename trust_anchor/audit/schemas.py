"""Audit API schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class ArchiveRequest(BaseModel):
    """Request to archive old audit logs."""

    retention_days: Optional[int] = Field(None, ge=0, description="Override the configured retention window")
