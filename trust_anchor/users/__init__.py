"""Users domain - invitations."""

from .router import router
from .schemas import InviteRequest, InviteResponse
from .service import invite_user

__all__ = ["router", "InviteRequest", "InviteResponse", "invite_user"]
