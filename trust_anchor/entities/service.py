"""
Generic record store over the table models.

Clients address records by entity name (``Transaction``, ``Case`` ...). Every
operation is tenant scoped: non-admins only see and write records of their own
organization. Global records (organizations, users, providers) and the audit
trail are admin-only for writes, and provider credentials are masked for
non-admins.
"""

from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import JSON
from sqlmodel import Session, select

from trust_anchor.core.auth import is_admin
from trust_anchor.core.errors import BadRequestError, ForbiddenError, NotFoundError
from trust_anchor.core.models import (
    ENTITY_MODELS,
    Organization,
    RecordBase,
    User,
    Webhook,
    to_dict,
    utcnow,
)
from trust_anchor.webhooks.service import create_org_webhook, is_valid_url

ADMIN_WRITE_ENTITIES = {"User", "Organization", "Provider", "AuditLog"}
MASKED_FIELDS = {"Provider": {"api_key", "client_id", "client_secret"}}
PROTECTED_FIELDS = {"Webhook": {"secret_key"}}
IMMUTABLE_FIELDS = {"id", "created_date"}
SERVER_FIELDS = {"id", "created_date", "updated_date"}
DEFAULT_LIMIT = 100
DEFAULT_SORT = "-created_date"


def get_model(entity: str) -> type[RecordBase]:
    model = ENTITY_MODELS.get(entity)
    if model is None:
        raise NotFoundError(f"Unknown entity: {entity}")
    return model


def _fields(model: type[RecordBase]) -> dict:
    return model.model_fields


def _is_json_column(model: type[RecordBase], name: str) -> bool:
    column = model.__table__.columns.get(name)
    return column is not None and isinstance(column.type, JSON)


def _coerce(model: type[RecordBase], name: str, raw: str) -> Any:
    if _is_json_column(model, name):
        raise BadRequestError(f"Cannot filter on field: {name}")
    try:
        return TypeAdapter(_fields(model)[name].annotation).validate_python(raw)
    except ValidationError as e:
        raise BadRequestError(f"Invalid value for {name}: {raw}") from e


def _scope(query, model: type[RecordBase], user: User):
    if is_admin(user):
        return query
    if model is Organization:
        return query.where(Organization.id == user.organization_id)
    if "organization_id" in _fields(model):
        return query.where(model.organization_id == user.organization_id)
    return query


def _visible(record: RecordBase, user: User) -> bool:
    if is_admin(user):
        return True
    if isinstance(record, Organization):
        return record.id == user.organization_id
    if hasattr(record, "organization_id"):
        return record.organization_id == user.organization_id
    return True


def serialize(record: RecordBase, user: User) -> dict:
    """JSON view of a record as ``user`` may see it."""
    data = to_dict(record)
    if is_admin(user):
        return data
    for name in MASKED_FIELDS.get(type(record).__name__, ()):
        if data.get(name):
            data[name] = "***"
    return data


def _check_write(entity: str, user: User) -> None:
    if entity in ADMIN_WRITE_ENTITIES and not is_admin(user):
        raise ForbiddenError(f"Admin access required to modify {entity}")


def _check_fields(model: type[RecordBase], data: dict) -> None:
    unknown = sorted(set(data) - set(_fields(model)))
    if unknown:
        raise BadRequestError(f"Unknown fields: {', '.join(unknown)}")


def _validate(model: type[RecordBase], data: dict) -> RecordBase:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise BadRequestError(f"Invalid {model.__name__}: {e}") from e


def list_records(
    session: Session,
    user: User,
    entity: str,
    filters: dict[str, str] | None = None,
    sort: str | None = DEFAULT_SORT,
    limit: int = DEFAULT_LIMIT,
) -> list[RecordBase]:
    """List records, filtered by column equality and sorted by one field."""
    model = get_model(entity)
    query = _scope(select(model), model, user)

    for name, raw in (filters or {}).items():
        if name not in _fields(model):
            raise BadRequestError(f"Unknown field: {name}")
        if name in MASKED_FIELDS.get(entity, ()) and not is_admin(user):
            raise BadRequestError(f"Cannot filter on field: {name}")
        query = query.where(getattr(model, name) == _coerce(model, name, raw))

    sort = sort or DEFAULT_SORT
    descending = sort.startswith("-")
    sort_field = sort.lstrip("-")
    if sort_field not in _fields(model):
        raise BadRequestError(f"Unknown sort field: {sort_field}")
    column = getattr(model, sort_field)
    query = query.order_by(column.desc() if descending else column.asc())

    return list(session.exec(query.limit(limit)).all())


def get_record(session: Session, user: User, entity: str, record_id: str) -> RecordBase:
    model = get_model(entity)
    record = session.get(model, record_id)
    if record is None or not _visible(record, user):
        raise NotFoundError(f"{entity} not found: {record_id}")
    return record


def _create_webhook(session: Session, user: User, payload: dict) -> Webhook:
    organization_id = payload.get("organization_id") or user.organization_id
    result = create_org_webhook(session, user, organization_id, payload.get("url"), payload.get("event_types"))
    return session.get(Webhook, result["webhook"]["id"])


def create_record(session: Session, user: User, entity: str, data: dict) -> RecordBase:
    model = get_model(entity)
    _check_write(entity, user)
    _check_fields(model, data)

    payload = {k: v for k, v in data.items() if k not in SERVER_FIELDS}
    if "organization_id" in _fields(model) and not is_admin(user):
        payload["organization_id"] = user.organization_id
    if model is User and payload.get("email"):
        payload["email"] = str(payload["email"]).strip().lower()

    # Webhooks always get a validated URL, a generated secret and an audit entry.
    if model is Webhook:
        return _create_webhook(session, user, payload)

    record = _validate(model, payload)
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def update_record(session: Session, user: User, entity: str, record_id: str, data: dict) -> RecordBase:
    model = get_model(entity)
    _check_write(entity, user)
    _check_fields(model, data)
    immutable = sorted((IMMUTABLE_FIELDS | PROTECTED_FIELDS.get(entity, set())) & set(data))
    if immutable:
        raise BadRequestError(f"Immutable fields: {', '.join(immutable)}")
    if model is Webhook and "url" in data and not is_valid_url(str(data["url"] or "")):
        raise BadRequestError("Invalid webhook URL")

    record = get_record(session, user, entity, record_id)
    changes = {k: v for k, v in data.items() if k != "updated_date"}
    if "organization_id" in changes and not is_admin(user):
        changes["organization_id"] = user.organization_id
    if model is User and changes.get("email"):
        changes["email"] = str(changes["email"]).strip().lower()

    validated = _validate(model, {**record.model_dump(), **changes})
    for key in changes:
        setattr(record, key, getattr(validated, key))
    record.updated_date = utcnow()
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def delete_record(session: Session, user: User, entity: str, record_id: str) -> dict:
    """Hard delete. Returns the deleted record as it was."""
    _check_write(entity, user)
    record = get_record(session, user, entity, record_id)
    snapshot = serialize(record, user)
    session.delete(record)
    session.commit()
    return snapshot
