"""Workflow API endpoints."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User
from trust_anchor.providers.clients import (
    AMLWatcherClient,
    FaciaClient,
    GleifClient,
    get_aml_client,
    get_facia_client,
    get_gleif_client,
)

from . import service
from .schemas import ChainVerification, ExecuteWorkflowRequest, ExecuteWorkflowResponse

router = APIRouter(prefix="/workflows", tags=["workflows"])


@router.post("/execute", response_model=ExecuteWorkflowResponse)
def execute_workflow(
    request: ExecuteWorkflowRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    gleif: GleifClient = Depends(get_gleif_client),
    facia: FaciaClient = Depends(get_facia_client),
    aml_client: AMLWatcherClient = Depends(get_aml_client),
) -> dict:
    """
    Run a kyb, vlei_issuance, or aml workflow.

    Each provider step is appended to the workflow's signed provenance chain.
    """
    return service.execute_workflow(
        session,
        user,
        request.type.value if request.type else None,
        request.entity_data,
        gleif,
        facia,
        aml_client,
        workflow_id=request.workflow_id,
    )


@router.get("/{workflow_id}/verify", response_model=ChainVerification)
def verify_workflow(
    workflow_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Recompute the provenance chain and data passport signatures."""
    return service.verify_workflow(session, user, workflow_id)
