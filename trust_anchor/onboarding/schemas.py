"""Onboarding schemas."""

from typing import Optional

from pydantic import BaseModel


class ApproveRequest(BaseModel):
    approval_notes: Optional[str] = None


class RejectRequest(BaseModel):
    rejection_reason: Optional[str] = None


class LeiValidationRequest(BaseModel):
    lei: str


class LeiValidationResult(BaseModel):
    lei: str
    valid: bool


class GeneratedLei(BaseModel):
    success: bool = True
    lei: str
    application_id: str
    message: str
