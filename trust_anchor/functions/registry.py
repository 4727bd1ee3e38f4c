"""
Named server functions.

Front-end clients invoke backend operations by function name with a JSON
body whose keys follow the client's own naming (``applicationId``,
``assigneeEmail`` ...). Each handler unpacks that body and delegates to the
domain service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel, ValidationError
from sqlmodel import Session

from trust_anchor.audit.service import archive_old_logs
from trust_anchor.cases.service import assign_case, create_case
from trust_anchor.core.auth import enforce_tenant, is_admin
from trust_anchor.core.errors import BadRequestError, NotFoundError
from trust_anchor.core.models import User, to_dict
from trust_anchor.fraud.service import detect_fraud
from trust_anchor.monitoring.schemas import ApplicationMonitoringRequest
from trust_anchor.monitoring.service import (
    run_aml_monitoring,
    run_kyb_monitoring,
    schedule_application_monitoring,
)
from trust_anchor.notifications.service import create_notification
from trust_anchor.onboarding.service import (
    approve_application,
    generate_lei,
    reject_application,
    run_aml_screening,
)
from trust_anchor.providers.clients import AMLWatcherClient, FaciaClient, GeoIPClient, GleifClient, HttpPoster
from trust_anchor.providers.service import check_provider_health, select_optimal_provider
from trust_anchor.rules.service import evaluate_for_organization
from trust_anchor.tmaas.enrichment import enrich_transaction
from trust_anchor.tmaas.schemas import AnalyticsRequest, EnrichmentRequest, ScreenTransactionRequest
from trust_anchor.tmaas.service import get_analytics, screen_transaction, update_transaction_status
from trust_anchor.users.service import invite_user
from trust_anchor.webhooks.service import create_org_webhook, dispatch_event
from trust_anchor.workflows.schemas import EntityData
from trust_anchor.workflows.service import execute_workflow


@dataclass
class FunctionContext:
    """Everything a handler may need for one invocation."""

    session: Session
    user: User
    aml_client: AMLWatcherClient
    gleif: GleifClient
    facia: FaciaClient
    poster: HttpPoster
    geoip: GeoIPClient


Handler = Callable[[FunctionContext, dict], dict]

FUNCTIONS: dict[str, Handler] = {}


def register(name: str) -> Callable[[Handler], Handler]:
    def decorator(handler: Handler) -> Handler:
        FUNCTIONS[name] = handler
        return handler

    return decorator


def invoke(name: str, ctx: FunctionContext, body: dict[str, Any]) -> dict:
    handler = FUNCTIONS.get(name)
    if handler is None:
        raise NotFoundError(f"Function not found: {name}")
    return handler(ctx, body)


def _parse(model: type[BaseModel], body: dict) -> BaseModel:
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise BadRequestError(str(e)) from e


# =============================================================================
# Users and tenancy
# =============================================================================


@register("inviteTestUser")
def _invite_test_user(ctx: FunctionContext, body: dict) -> dict:
    return invite_user(ctx.session, ctx.user, body.get("email"), body.get("role") or "user")


@register("enforceMultiTenantIsolation")
def _enforce_isolation(ctx: FunctionContext, body: dict) -> dict:
    return enforce_tenant(ctx.session, ctx.user, body.get("requestedOrgId"), body.get("resourceType"))


@register("sendNotification")
def _send_notification(ctx: FunctionContext, body: dict) -> dict:
    notification = create_notification(
        ctx.session,
        recipient_email=body.get("recipientEmail"),
        type=body.get("type"),
        title=body.get("title"),
        message=body.get("message"),
        action_url=body.get("actionUrl"),
        priority=body.get("priority") or "medium",
        send_email=body.get("sendEmail") is not False,
        organization_id=ctx.user.organization_id,
    )
    ctx.session.commit()
    ctx.session.refresh(notification)
    return {
        "success": True,
        "notification": to_dict(notification),
        "message": "Notification sent successfully",
    }


# =============================================================================
# Transaction monitoring
# =============================================================================


@register("screenTransaction")
def _screen_transaction(ctx: FunctionContext, body: dict) -> dict:
    request = _parse(ScreenTransactionRequest, body)
    return screen_transaction(ctx.session, ctx.user, request, ctx.aml_client, ctx.poster, ctx.geoip)


@register("enrichTransactionData")
def _enrich_transaction_data(ctx: FunctionContext, body: dict) -> dict:
    request = _parse(EnrichmentRequest, body)
    enriched = enrich_transaction(
        ctx.session, ctx.user.organization_id, ctx.geoip, request.ip_address, request.from_account
    )
    return {"success": True, "enriched_data": enriched}


@register("updateTransactionStatus")
def _update_transaction_status(ctx: FunctionContext, body: dict) -> dict:
    return update_transaction_status(
        ctx.session,
        ctx.user,
        body.get("transaction_id"),
        body.get("new_status"),
        ctx.poster,
        resolution_notes=body.get("resolution_notes"),
        escalate_to_case=bool(body.get("escalate_to_case")),
    )


@register("getTMaaSAnalytics")
def _get_tmaas_analytics(ctx: FunctionContext, body: dict) -> dict:
    request = _parse(AnalyticsRequest, body)
    return get_analytics(ctx.session, ctx.user, request.days, request.tmaas_config_id)


@register("evaluateComplexRules")
def _evaluate_complex_rules(ctx: FunctionContext, body: dict) -> dict:
    org_id = body.get("organization_id") or ctx.user.organization_id
    enforce_tenant(ctx.session, ctx.user, org_id, "TransactionRule")
    result = evaluate_for_organization(
        ctx.session, org_id, body.get("transaction_data") or {}, body.get("enriched_data") or {}
    )
    return result.model_dump()


@register("detectFraud")
def _detect_fraud(ctx: FunctionContext, body: dict) -> dict:
    return detect_fraud(ctx.session, ctx.user, body.get("transaction_id"))


# =============================================================================
# Cases
# =============================================================================


@register("createCaseFromAlert")
def _create_case_from_alert(ctx: FunctionContext, body: dict) -> dict:
    case = create_case(
        ctx.session,
        type=body.get("type"),
        subject=body.get("subject"),
        priority=body.get("priority"),
        description=body.get("description"),
        sla_hours=body.get("sla_hours"),
        alert_id=body.get("alert_id"),
        application_id=body.get("application_id"),
        organization_id=ctx.user.organization_id,
        user=ctx.user,
    )
    return {"success": True, "case": to_dict(case)}


@register("assignCase")
def _assign_case(ctx: FunctionContext, body: dict) -> dict:
    case = assign_case(ctx.session, ctx.user, body.get("caseId"), body.get("assigneeEmail"), body.get("notes"))
    return {"success": True, "case": to_dict(case), "message": f"Case assigned to {case.assigned_to}"}


# =============================================================================
# Onboarding
# =============================================================================


@register("approveApplication")
def _approve_application(ctx: FunctionContext, body: dict) -> dict:
    return approve_application(ctx.session, ctx.user, body.get("applicationId"), body.get("approvalNotes"))


@register("rejectApplication")
def _reject_application(ctx: FunctionContext, body: dict) -> dict:
    return reject_application(ctx.session, ctx.user, body.get("applicationId"), body.get("rejectionReason"))


@register("generateLEI")
def _generate_lei(ctx: FunctionContext, body: dict) -> dict:
    return generate_lei(ctx.session, ctx.user, body.get("applicationId"))


@register("runAmlScreening")
def _run_aml_screening(ctx: FunctionContext, body: dict) -> dict:
    return run_aml_screening(ctx.session, ctx.user, body.get("applicationId"), ctx.aml_client)


# =============================================================================
# Perpetual monitoring
# =============================================================================


@register("scheduleAmlMonitoring")
def _schedule_aml_monitoring(ctx: FunctionContext, body: dict) -> dict:
    request = _parse(ApplicationMonitoringRequest, body)
    return schedule_application_monitoring(
        ctx.session, ctx.user, body.get("applicationId"), request.interval_days, ctx.aml_client, ctx.poster
    )


@register("runAMLMonitoring")
def _run_aml_monitoring(ctx: FunctionContext, body: dict) -> dict:
    run = run_aml_monitoring(ctx.session, ctx.user, body.get("schedule_id"), ctx.aml_client, ctx.poster)
    return run.model_dump()


@register("runKYBMonitoring")
def _run_kyb_monitoring(ctx: FunctionContext, body: dict) -> dict:
    run = run_kyb_monitoring(ctx.session, ctx.user, body.get("schedule_id"), ctx.gleif, ctx.poster)
    return run.model_dump()


# =============================================================================
# Webhooks, workflows, providers, audit
# =============================================================================


@register("createOrgWebhook")
def _create_org_webhook(ctx: FunctionContext, body: dict) -> dict:
    return create_org_webhook(
        ctx.session, ctx.user, body.get("organizationId"), body.get("url"), body.get("event_types")
    )


@register("sendWebhook")
def _send_webhook(ctx: FunctionContext, body: dict) -> dict:
    if not body.get("event_type"):
        raise BadRequestError("event_type is required")
    return dispatch_event(
        ctx.session,
        ctx.poster,
        body["event_type"],
        body.get("workflow_id"),
        body.get("application_id"),
        body.get("data"),
        organization_id=None if is_admin(ctx.user) else ctx.user.organization_id,
    )


@register("workflowExecutor")
def _workflow_executor(ctx: FunctionContext, body: dict) -> dict:
    raw = dict(body.get("entityData") or {})
    for camel, snake in (("faceFrame", "face_frame"), ("idFrame", "id_frame")):
        if camel in raw:
            raw[snake] = raw.pop(camel)
    return execute_workflow(
        ctx.session,
        ctx.user,
        body.get("type"),
        _parse(EntityData, raw),
        ctx.gleif,
        ctx.facia,
        ctx.aml_client,
        workflow_id=body.get("workflowId"),
    )


@register("selectOptimalProvider")
def _select_optimal_provider(ctx: FunctionContext, body: dict) -> dict:
    if not body.get("service_type"):
        raise BadRequestError("service_type is required")
    selection = select_optimal_provider(
        ctx.session, body["service_type"], body.get("country_code"), body.get("exclude_providers")
    )
    return selection.model_dump()


@register("checkProviderHealth")
def _check_provider_health(ctx: FunctionContext, body: dict) -> dict:
    return check_provider_health(ctx.session, ctx.user, ctx.poster).model_dump()


@register("archiveOldAuditLogs")
def _archive_old_audit_logs(ctx: FunctionContext, body: dict) -> dict:
    return archive_old_logs(ctx.session, ctx.user, body.get("retention_days"))
