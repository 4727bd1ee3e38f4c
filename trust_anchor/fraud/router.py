"""Fraud detection API endpoints."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User

from . import service
from .schemas import DetectFraudRequest, DetectFraudResponse

router = APIRouter(prefix="/fraud", tags=["fraud"])


@router.post("/detect", response_model=DetectFraudResponse)
def detect_fraud(
    request: DetectFraudRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Run the active fraud models against a screened transaction."""
    return service.detect_fraud(session, user, request.transaction_id)
