"""Entities domain - tenant-scoped generic record store."""

from .router import router
from .service import (
    create_record,
    delete_record,
    get_model,
    get_record,
    list_records,
    serialize,
    update_record,
)

__all__ = [
    "router",
    "create_record",
    "delete_record",
    "get_model",
    "get_record",
    "list_records",
    "serialize",
    "update_record",
]
