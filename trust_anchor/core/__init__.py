"""Core package - Shared configuration, database, identity, and record models."""

from .config import Settings, get_settings
from .database import get_engine, get_session, init_db, reset_engine, set_db_path
from .errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    IntegrationError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
)
from .models import ENTITY_MODELS, generate_uuid, to_dict, utcnow

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "get_engine",
    "get_session",
    "init_db",
    "reset_engine",
    "set_db_path",
    # Errors
    "ServiceError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "IntegrationError",
    # Models
    "ENTITY_MODELS",
    "generate_uuid",
    "to_dict",
    "utcnow",
]
