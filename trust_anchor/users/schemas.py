"""User management schemas."""

from typing import Optional

from pydantic import BaseModel


class InviteRequest(BaseModel):
    email: Optional[str] = None
    role: str = "user"


class InviteResponse(BaseModel):
    success: bool = True
    message: str
    email: str
    role: str
