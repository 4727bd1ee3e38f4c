"""Case management API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user, is_admin
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User, to_dict

from . import service
from .schemas import CaseAssignRequest, CaseCreateRequest, CaseCreated

router = APIRouter(prefix="/cases", tags=["cases"])


@router.get("")
def list_cases(
    status: Optional[str] = None,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """List cases visible to the caller, newest first."""
    return {"cases": [to_dict(c) for c in service.list_cases(session, user, status)]}


@router.post("", response_model=CaseCreated, status_code=status.HTTP_201_CREATED)
def create_case(
    request: CaseCreateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> CaseCreated:
    """Open a case, auto-assigned to the least-loaded reviewer."""
    case = service.create_case(
        session,
        type=request.type,
        subject=request.subject,
        priority=request.priority.value if request.priority else None,
        description=request.description,
        sla_hours=request.sla_hours,
        alert_id=request.alert_id,
        application_id=request.application_id,
        organization_id=user.organization_id,
        user=user,
    )
    return CaseCreated(case_id=case.id, case_number=case.case_number, assigned_to=case.assigned_to)


@router.post("/{case_id}/assign")
def assign_case(
    case_id: str,
    request: CaseAssignRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Assign a case to an investigator (admin only)."""
    case = service.assign_case(session, user, case_id, request.assignee_email, request.notes)
    return {"success": True, "case": to_dict(case)}


@router.post("/sla/refresh")
def refresh_sla(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Recompute SLA status for open cases."""
    org_id = None if is_admin(user) else user.organization_id
    return {"success": True, "updated": service.refresh_sla_status(session, org_id)}
