"""Fraud domain - model-driven fraud detection."""

from .router import router
from .schemas import DetectFraudRequest, DetectFraudResponse, Detection, FraudModelType
from .service import DETECTORS, detect_fraud, run_model

__all__ = [
    "router",
    "DetectFraudRequest",
    "DetectFraudResponse",
    "Detection",
    "FraudModelType",
    "DETECTORS",
    "detect_fraud",
    "run_model",
]
