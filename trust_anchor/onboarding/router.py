"""Onboarding API endpoints."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User
from trust_anchor.providers.clients import AMLWatcherClient, get_aml_client

from . import lei as lei_codes
from . import service
from .schemas import ApproveRequest, GeneratedLei, LeiValidationRequest, LeiValidationResult, RejectRequest

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


@router.post("/applications/{application_id}/approve")
def approve_application(
    application_id: str,
    request: ApproveRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    return service.approve_application(session, user, application_id, request.approval_notes)


@router.post("/applications/{application_id}/reject")
def reject_application(
    application_id: str,
    request: RejectRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    return service.reject_application(session, user, application_id, request.rejection_reason)


@router.post("/applications/{application_id}/lei", response_model=GeneratedLei)
def generate_lei(
    application_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Issue an LEI for the application (returns the existing one if already issued)."""
    return service.generate_lei(session, user, application_id)


@router.post("/applications/{application_id}/aml-screening")
def run_aml_screening(
    application_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    aml_client: AMLWatcherClient = Depends(get_aml_client),
) -> dict:
    return service.run_aml_screening(session, user, application_id, aml_client)


@router.post("/lei/validate", response_model=LeiValidationResult)
def validate_lei(request: LeiValidationRequest) -> LeiValidationResult:
    """Check an LEI's format and MOD 97-10 check digits."""
    return LeiValidationResult(lei=request.lei, valid=lei_codes.validate_lei(request.lei))
