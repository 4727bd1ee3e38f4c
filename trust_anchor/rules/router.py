"""Transaction rule API endpoints."""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlmodel import Session

from trust_anchor.core.auth import enforce_tenant, get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User, to_dict

from . import service
from .loader import load_rule_pack
from .schemas import EvaluateRequest, EvaluationResult, RuleCreate, RuleUpdate

router = APIRouter(prefix="/rules", tags=["rules"])


class RuleImportRequest(BaseModel):
    """YAML rule pack to import."""

    content: str = Field(..., min_length=1, description="YAML document with one or more rules")
    organization_id: str | None = None


@router.get("")
def list_rules(
    enabled_only: bool = False,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """List the organization's rules in evaluation order."""
    rules = service.list_rules(session, user.organization_id, enabled_only=enabled_only)
    return {"rules": [to_dict(r) for r in rules]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_rule(
    request: RuleCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Create a validated transaction rule."""
    return to_dict(service.create_rule(session, user, request))


@router.put("/{rule_id}")
def update_rule(
    rule_id: str,
    request: RuleUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Update a transaction rule."""
    return to_dict(service.update_rule(session, user, rule_id, request))


@router.post("/evaluate", response_model=EvaluationResult)
def evaluate_rules(
    request: EvaluateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> EvaluationResult:
    """
    Evaluate the organization's enabled rules against a transaction.

    Rules run in ascending priority. The final action is chosen by precedence:
    auto_block > escalate_to_case > flag > require_additional_verification > auto_approve.
    """
    org_id = request.organization_id or user.organization_id
    enforce_tenant(session, user, org_id, "TransactionRule")
    return service.evaluate_for_organization(
        session, org_id, request.transaction_data, request.enriched_data
    )


@router.get("/conflicts")
def list_conflicts(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Find rules with identical conditions but different actions."""
    rules = service.list_rules(session, user.organization_id)
    return {"conflicts": [c.model_dump() for c in service.find_conflicts(rules)]}


@router.post("/import", status_code=status.HTTP_201_CREATED)
def import_rule_pack(
    request: RuleImportRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Import a YAML rule pack into the organization."""
    org_id = request.organization_id or user.organization_id
    enforce_tenant(session, user, org_id, "TransactionRule")
    records = load_rule_pack(session, org_id, request.content)
    return {"imported": len(records), "rules": [to_dict(r) for r in records]}
