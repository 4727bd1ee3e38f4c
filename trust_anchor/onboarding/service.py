"""Onboarding application review, LEI issuance, and AML screening."""

from __future__ import annotations

import logging

from sqlmodel import Session

from trust_anchor.audit.service import record_event
from trust_anchor.core.auth import enforce_tenant, is_admin, require_admin
from trust_anchor.core.config import get_settings
from trust_anchor.core.errors import BadRequestError, ForbiddenError, NotFoundError
from trust_anchor.core.models import AMLAlert, OnboardingApplication, User, to_dict, utcnow
from trust_anchor.notifications.service import create_notification
from trust_anchor.providers.clients import AMLWatcherClient

from . import lei as lei_codes

logger = logging.getLogger(__name__)

ADMIN_REQUIRED = "Forbidden: Admin access required"


def get_application(session: Session, application_id: str | None) -> OnboardingApplication:
    if not application_id:
        raise BadRequestError("applicationId required")
    application = session.get(OnboardingApplication, application_id)
    if application is None:
        raise NotFoundError("Application not found")
    return application


def authorize_application(session: Session, user: User, application: OnboardingApplication) -> None:
    """Confine non-admins to their organization's applications, or their own when it has none."""
    if is_admin(user):
        return
    if application.organization_id:
        enforce_tenant(session, user, application.organization_id, "OnboardingApplication")
    elif application.user_id != user.id and application.email != user.email:
        raise ForbiddenError("Forbidden: Access denied to this application")


def _set_status(session: Session, application: OnboardingApplication, status: str) -> None:
    application.status = status
    application.updated_date = utcnow()
    session.add(application)


def generate_lei(session: Session, user: User, application_id: str | None) -> dict:
    """Issue an LEI for an application. Idempotent per application."""
    application = get_application(session, application_id)
    authorize_application(session, user, application)

    if application.generated_lei:
        return {
            "success": True,
            "lei": application.generated_lei,
            "application_id": application.id,
            "message": "LEI already generated for this application",
        }

    code = lei_codes.generate_lei(get_settings().lei_prefix)
    now = utcnow()
    application.generated_lei = code
    application.lei_issued_date = now
    application.updated_date = now
    session.add(application)

    record_event(
        session,
        event=f"LEI generated: {code}",
        event_type="signature_generated",
        actor="system",
        workflow_id=application.id,
        organization_id=application.organization_id,
        details={"lei": code, "generated_at": now.isoformat(), "legal_name": application.legal_name},
    )
    session.commit()
    logger.info("Issued LEI %s for application %s", code, application.id)

    return {
        "success": True,
        "lei": code,
        "application_id": application.id,
        "message": "LEI generated successfully",
    }


def approve_application(
    session: Session, user: User, application_id: str | None, approval_notes: str | None = None
) -> dict:
    """Approve an application and issue its LEI (admin only)."""
    require_admin(user, ADMIN_REQUIRED)
    application = get_application(session, application_id)

    _set_status(session, application, "approved")
    record_event(
        session,
        event=f"Application approved by {user.email}",
        event_type="application_approved",
        actor=user.email,
        workflow_id=application.id,
        organization_id=application.organization_id,
        details={
            "approved_by": user.email,
            "approval_notes": approval_notes,
            "approved_at": utcnow().isoformat(),
        },
    )
    if application.email:
        create_notification(
            session,
            recipient_email=application.email,
            recipient_id=application.user_id,
            organization_id=application.organization_id,
            type="application_approved",
            title="Your LEI Application Has Been Approved",
            message=(
                "Your business onboarding application has been approved. "
                "LEI and vLEI credentials will be issued shortly."
            ),
            action_url="/credentials",
            priority="high",
        )
    session.commit()

    issued = generate_lei(session, user, application.id)
    session.refresh(application)

    return {
        "success": True,
        "application": to_dict(application),
        "lei": issued["lei"],
        "message": "Application approved successfully. Credentials are being issued.",
    }


def reject_application(
    session: Session, user: User, application_id: str | None, rejection_reason: str | None
) -> dict:
    """Reject an application with a reason (admin only)."""
    require_admin(user, ADMIN_REQUIRED)
    if not application_id or not rejection_reason:
        raise BadRequestError("applicationId and rejectionReason required")
    application = get_application(session, application_id)

    _set_status(session, application, "rejected")
    record_event(
        session,
        event=f"Application rejected by {user.email}",
        event_type="application_rejected",
        actor=user.email,
        workflow_id=application.id,
        organization_id=application.organization_id,
        details={
            "rejected_by": user.email,
            "rejection_reason": rejection_reason,
            "rejected_at": utcnow().isoformat(),
        },
    )
    if application.email:
        create_notification(
            session,
            recipient_email=application.email,
            recipient_id=application.user_id,
            organization_id=application.organization_id,
            type="application_rejected",
            title="Your LEI Application Was Not Approved",
            message=f"Your business onboarding application has been rejected. Reason: {rejection_reason}",
            action_url="/applications/status",
            priority="high",
        )
    session.commit()
    session.refresh(application)

    return {
        "success": True,
        "application": to_dict(application),
        "message": "Application rejected successfully",
    }


def _alert_severity(risk_level: str | None) -> str:
    if risk_level in ("high", "medium"):
        return risk_level
    return "low"


def run_aml_screening(
    session: Session, user: User, application_id: str | None, aml_client: AMLWatcherClient
) -> dict:
    """
    Screen an application's business entity with AML Watcher.

    High-risk results put the application under review and raise an open
    sanction alert; anything else approves it and records a resolved alert.
    """
    if not application_id:
        raise BadRequestError("Application ID required")
    application = get_application(session, application_id)
    authorize_application(session, user, application)

    screening = aml_client.screen_business(
        entity_name=application.legal_name,
        country=(application.legal_address or {}).get("country") or "HK",
        registration_number=application.unique_business_id,
    )
    risk_level = screening.get("risk_level")
    high_risk = risk_level == "high"

    alert = AMLAlert(
        organization_id=application.organization_id,
        user_id=user.id,
        type="sanction_hit" if high_risk else "adverse_media",
        severity=_alert_severity(risk_level),
        details={
            "aml_watcher_id": screening.get("screening_id"),
            "matches": screening.get("matches") or [],
            "risk_indicators": screening.get("risk_indicators") or [],
            "application_id": application.id,
        },
        status="new" if high_risk else "resolved",
    )
    session.add(alert)

    new_status = "under_review" if high_risk else "approved"
    _set_status(session, application, new_status)
    application.tas_verification_status = "aml_passed" if new_status == "approved" else "submitted"
    application.aml_result = screening

    create_notification(
        session,
        recipient_email=user.email,
        recipient_id=user.id,
        organization_id=application.organization_id,
        type="workflow_completed" if not high_risk else "aml_alert",
        title="AML Check Passed" if not high_risk else "Application Under Review",
        message=(
            "Your AML screening passed. Please proceed to facial verification."
            if not high_risk
            else "Your application requires additional review. Our team will contact you shortly."
        ),
        priority="high" if high_risk else "medium",
        context={"application_id": application.id},
    )
    session.commit()
    session.refresh(alert)
    logger.info("AML screening for application %s: %s", application.id, risk_level)

    return {
        "success": True,
        "aml_alert_id": alert.id,
        "application_status": new_status,
        "screening_result": screening,
    }
