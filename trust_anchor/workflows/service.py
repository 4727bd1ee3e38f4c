"""
Verification workflow execution.

A workflow runs the provider steps for its type (GLEIF LEI lookup, Facia face
match, AML Watcher screening), appends a signed provenance link per step, and
issues a signed data passport over the final chain.
"""

from __future__ import annotations

import logging

from sqlmodel import Session

from trust_anchor.audit.service import record_event
from trust_anchor.core.auth import enforce_tenant
from trust_anchor.core.config import get_settings
from trust_anchor.core.errors import BadRequestError, IntegrationError, NotFoundError
from trust_anchor.core.models import AMLAlert, User, Workflow, to_dict, utcnow
from trust_anchor.providers.clients import AMLWatcherClient, FaciaClient, GleifClient

from . import provenance
from .schemas import EntityData, WorkflowType

logger = logging.getLogger(__name__)

MAX_AML_ALERTS = 5


def match_severity(score: float | None) -> str:
    score = score or 0
    if score > 0.8:
        return "high"
    if score > 0.5:
        return "medium"
    return "low"


def _passport_fields(passport: dict) -> dict:
    return {
        "workflow_id": passport.get("workflow_id"),
        "chain_head": passport.get("chain_head"),
        "results_digest": passport.get("results_digest"),
        "issued_at": passport.get("issued_at"),
    }


def _load_workflow(session: Session, user: User, workflow_id: str) -> Workflow:
    workflow = session.get(Workflow, workflow_id)
    if workflow is None:
        raise NotFoundError("Workflow not found")
    enforce_tenant(session, user, workflow.organization_id, "Workflow")
    return workflow


def execute_workflow(
    session: Session,
    user: User,
    workflow_type: str | None,
    entity_data: EntityData,
    gleif: GleifClient,
    facia: FaciaClient,
    aml_client: AMLWatcherClient,
    workflow_id: str | None = None,
) -> dict:
    """Run a verification workflow and return its results and data passport.

    A provider failure marks the workflow ``failed`` and propagates.
    """
    if workflow_id:
        workflow = _load_workflow(session, user, workflow_id)
        workflow_type = workflow_type or workflow.type
    else:
        if workflow_type not in {t.value for t in WorkflowType}:
            raise BadRequestError(f"Unknown workflow type: {workflow_type}")
        workflow = Workflow(
            organization_id=user.organization_id,
            user_id=user.id,
            type=workflow_type,
            status="in_progress",
            language=user.language or "en",
        )
        session.add(workflow)
        session.commit()
        session.refresh(workflow)

    secret = get_settings().signing_secret
    chain = list(workflow.provenance_chain or [])
    results: dict = {}
    alerts: list[AMLAlert] = []

    def record_step(step: str, provider: str, result: dict) -> None:
        nonlocal chain
        chain = provenance.append_link(
            chain, secret, workflow.id, step, provider, utcnow().isoformat(), result
        )

    try:
        if workflow_type in (WorkflowType.KYB.value, WorkflowType.VLEI_ISSUANCE.value):
            results["lei"] = gleif.search(entity_data.legal_name or "")
            record_step("lei_verification", "GLEIF", results["lei"])

        if workflow_type == WorkflowType.KYB.value and entity_data.face_frame and entity_data.id_frame:
            results["identity"] = facia.face_match(entity_data.face_frame, entity_data.id_frame, workflow.id)
            record_step("identity_verification", "Facia", results["identity"])

        if workflow_type in (WorkflowType.AML.value, WorkflowType.KYB.value):
            results["aml"] = aml_client.screen_business(
                entity_data.legal_name or "", entity_data.country, entity_data.registration_number
            )
            record_step("aml_screening", "AML Watcher", results["aml"])

            for match in (results["aml"].get("matches") or [])[:MAX_AML_ALERTS]:
                alerts.append(
                    AMLAlert(
                        organization_id=workflow.organization_id,
                        user_id=user.id,
                        workflow_id=workflow.id,
                        type=match.get("category") or "sanction_hit",
                        severity=match_severity(match.get("score")),
                        details=match,
                        status="new",
                    )
                )
    except IntegrationError:
        workflow.status = "failed"
        workflow.provenance_chain = chain
        workflow.updated_date = utcnow()
        session.add(workflow)
        session.commit()
        logger.error("Workflow %s failed after %d steps", workflow.id, len(chain))
        raise

    head = provenance.chain_head(chain, workflow.id)
    passport = {
        "workflow_id": workflow.id,
        "entity_data": entity_data.model_dump(exclude={"face_frame", "id_frame"}),
        "verification_results": results,
        "provenance_chain": chain,
        "chain_head": head,
        "results_digest": provenance.digest(results),
        "issued_at": utcnow().isoformat(),
    }
    passport["signature"] = provenance.sign(secret, _passport_fields(passport))

    for alert in alerts:
        session.add(alert)

    workflow.status = "completed"
    workflow.provenance_chain = chain
    workflow.result = results
    workflow.data_passport = passport
    workflow.updated_date = utcnow()
    session.add(workflow)

    record_event(
        session,
        event="workflow_completed",
        event_type="workflow_completed",
        actor=user.email,
        workflow_id=workflow.id,
        organization_id=workflow.organization_id,
        details={"type": workflow_type, "steps": len(chain)},
        signature=provenance.sign(secret, {"workflow_id": workflow.id, "chain_head": head, "completed": True}),
    )
    session.commit()
    session.refresh(workflow)
    logger.info("Workflow %s (%s) completed with %d steps", workflow.id, workflow_type, len(chain))

    return {"status": "success", "workflow": to_dict(workflow), "results": results, "data_passport": passport}


def verify_provenance_chain(chain: list[dict], workflow_id: str) -> dict:
    return provenance.verify_chain(chain, get_settings().signing_secret, workflow_id)


def verify_workflow(session: Session, user: User, workflow_id: str) -> dict:
    """Verify a stored workflow's provenance chain and data passport signature."""
    workflow = _load_workflow(session, user, workflow_id)
    secret = get_settings().signing_secret
    chain = workflow.provenance_chain or []
    outcome = provenance.verify_chain(chain, secret, workflow.id)

    passport_valid = None
    passport = workflow.data_passport
    if passport:
        expected = provenance.sign(secret, _passport_fields(passport))
        passport_valid = (
            expected == passport.get("signature")
            and passport.get("chain_head") == provenance.chain_head(chain, workflow.id)
            and passport.get("results_digest") == provenance.digest(workflow.result or {})
        )

    return {"workflow_id": workflow.id, **outcome, "passport_valid": passport_valid}
