"""User management API endpoints."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User, to_dict

from . import service
from .schemas import InviteRequest, InviteResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me")
def read_me(user: User = Depends(get_current_user)) -> dict:
    return to_dict(user)


@router.post("/invite", response_model=InviteResponse)
def invite_user(
    request: InviteRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Invite a user into the caller's organization (admin only)."""
    return service.invite_user(session, user, request.email, request.role)
