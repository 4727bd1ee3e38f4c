"""Notifications domain."""

from .router import router
from .service import create_notification, list_for_user, mark_read

__all__ = ["router", "create_notification", "list_for_user", "mark_read"]
