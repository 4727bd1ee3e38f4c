"""Audit log domain."""

from .router import router
from .service import archive_old_logs, list_events, record_event

__all__ = [
    "router",
    "archive_old_logs",
    "list_events",
    "record_event",
]
