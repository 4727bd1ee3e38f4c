"""Generic entity API endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User

from . import service

router = APIRouter(prefix="/entities", tags=["entities"])

RESERVED_PARAMS = {"sort", "limit"}


@router.get("/{entity}")
def list_records(
    entity: str,
    request: Request,
    sort: Optional[str] = service.DEFAULT_SORT,
    limit: int = Query(service.DEFAULT_LIMIT, ge=1, le=1000),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> list[dict]:
    """
    List records of an entity.

    Any query parameter other than ``sort`` and ``limit`` is an equality
    filter on a field, e.g. ``/entities/Transaction?status=flagged``.
    """
    filters = {k: v for k, v in request.query_params.items() if k not in RESERVED_PARAMS}
    records = service.list_records(session, user, entity, filters, sort, limit)
    return [service.serialize(r, user) for r in records]


@router.get("/{entity}/{record_id}")
def get_record(
    entity: str,
    record_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    return service.serialize(service.get_record(session, user, entity, record_id), user)


@router.post("/{entity}", status_code=status.HTTP_201_CREATED)
def create_record(
    entity: str,
    data: dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    return service.serialize(service.create_record(session, user, entity, data), user)


@router.patch("/{entity}/{record_id}")
def update_record(
    entity: str,
    record_id: str,
    data: dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    return service.serialize(service.update_record(session, user, entity, record_id, data), user)


@router.delete("/{entity}/{record_id}")
def delete_record(
    entity: str,
    record_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    return service.delete_record(session, user, entity, record_id)
