"""Workflow schemas."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class WorkflowType(str, Enum):
    KYB = "kyb"
    VLEI_ISSUANCE = "vlei_issuance"
    AML = "aml"


class EntityData(BaseModel):
    """Subject of a verification workflow."""

    legal_name: Optional[str] = None
    country: Optional[str] = None
    registration_number: Optional[str] = None
    face_frame: Optional[str] = None
    id_frame: Optional[str] = None

    model_config = {"extra": "allow"}


class ExecuteWorkflowRequest(BaseModel):
    type: Optional[WorkflowType] = None
    workflow_id: Optional[str] = None
    entity_data: EntityData = Field(default_factory=EntityData)


class ChainVerification(BaseModel):
    workflow_id: str
    valid: bool
    length: int
    broken_at: Optional[int] = None
    passport_valid: Optional[bool] = None


class ExecuteWorkflowResponse(BaseModel):
    status: str = "success"
    workflow: dict[str, Any]
    results: dict[str, Any]
    data_passport: dict[str, Any]
