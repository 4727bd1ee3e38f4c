"""Fraud detection schemas."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class FraudModelType(str, Enum):
    DEVICE_FINGERPRINT = "device_fingerprint"
    BEHAVIORAL_ANALYSIS = "behavioral_analysis"
    VELOCITY_CHECK = "velocity_check"
    PATTERN_RECOGNITION = "pattern_recognition"
    ANOMALY_DETECTION = "anomaly_detection"


class Detection(BaseModel):
    """Outcome of running one fraud model against a transaction."""

    is_fraud: bool = False
    confidence: float = 0.0
    risk_score: float = 0.0
    fraud_type: str = "unknown"
    indicators: list[str] = Field(default_factory=list)
    device_data: dict[str, Any] = Field(default_factory=dict)
    behavioral_data: dict[str, Any] = Field(default_factory=dict)


class DetectFraudRequest(BaseModel):
    transaction_id: Optional[str] = None


class DetectFraudResponse(BaseModel):
    success: bool = True
    alerts_created: int
    fraud_detected: bool
    alerts: list[dict[str, Any]] = Field(default_factory=list)
