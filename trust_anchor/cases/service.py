"""Case management: creation from alerts, assignment, and SLA tracking."""

from __future__ import annotations

import logging
import secrets
import string
import time
from datetime import datetime, timedelta

from sqlmodel import Session, func, select

from trust_anchor.audit.service import record_event
from trust_anchor.core.auth import is_admin, require_admin
from trust_anchor.core.config import get_settings
from trust_anchor.core.errors import BadRequestError, NotFoundError
from trust_anchor.core.models import (
    AMLAlert,
    Case,
    CaseNote,
    OnboardingApplication,
    User,
    to_dict,
    utcnow,
)
from trust_anchor.notifications.service import create_notification

from .schemas import SlaStatus

logger = logging.getLogger(__name__)

REVIEWER_ROLES = ("admin", "analyst")
CLOSED_STATUSES = ("resolved", "closed")
AT_RISK_FRACTION = 0.25

_CASE_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_case_number() -> str:
    """``CASE-<epoch ms>-<5 random alphanumerics>``."""
    suffix = "".join(secrets.choice(_CASE_SUFFIX_ALPHABET) for _ in range(5))
    return f"CASE-{int(time.time() * 1000)}-{suffix}"


def compute_sla_status(case: Case, now: datetime | None = None) -> str:
    """SLA state of an open case.

    A case is at risk once less than a quarter of its SLA window remains.
    """
    if case.sla_due_date is None:
        return SlaStatus.ON_TIME.value
    now = now or utcnow()
    if now > case.sla_due_date:
        return SlaStatus.BREACHED.value
    window = (case.sla_due_date - case.created_date).total_seconds()
    remaining = (case.sla_due_date - now).total_seconds()
    if window > 0 and remaining <= window * AT_RISK_FRACTION:
        return SlaStatus.AT_RISK.value
    return SlaStatus.ON_TIME.value


def refresh_sla_status(session: Session, organization_id: str | None = None) -> int:
    """Recompute SLA status for open cases. Returns the number of cases changed."""
    query = select(Case).where(Case.status.not_in(CLOSED_STATUSES))
    if organization_id is not None:
        query = query.where(Case.organization_id == organization_id)

    now = utcnow()
    changed = 0
    for case in session.exec(query).all():
        new_status = compute_sla_status(case, now)
        if new_status != case.sla_status:
            case.sla_status = new_status
            case.updated_date = now
            session.add(case)
            changed += 1
    if changed:
        session.commit()
    return changed


def _pick_reviewer(session: Session, organization_id: str | None) -> User | None:
    """The org reviewer with the fewest open cases (ties broken by email)."""
    if organization_id is None:
        return None
    reviewers = session.exec(
        select(User).where(
            User.organization_id == organization_id,
            User.role.in_(REVIEWER_ROLES),
            User.status == "active",
        )
    ).all()
    if not reviewers:
        return None

    open_counts = dict(
        session.exec(
            select(Case.assigned_to, func.count())
            .where(
                Case.organization_id == organization_id,
                Case.status.not_in(CLOSED_STATUSES),
                Case.assigned_to.is_not(None),
            )
            .group_by(Case.assigned_to)
        ).all()
    )
    return min(reviewers, key=lambda u: (open_counts.get(u.email, 0), u.email))


def _apply_assignment(
    session: Session,
    case: Case,
    assignee: User,
    assigned_by: str,
    author_name: str | None,
    notes: str | None,
) -> None:
    now = utcnow()
    case.status = "assigned"
    case.assigned_to = assignee.email
    case.assigned_at = now
    case.assigned_by = assigned_by
    case.updated_date = now
    session.add(case)

    session.add(
        CaseNote(
            organization_id=case.organization_id,
            case_id=case.id,
            author_email=assigned_by,
            author_name=author_name,
            note_type="assignment",
            content=notes or f"Case assigned to {assignee.email} by {author_name or assigned_by}",
            is_internal=True,
        )
    )
    create_notification(
        session,
        recipient_email=assignee.email,
        recipient_id=assignee.id,
        organization_id=case.organization_id,
        type="case_assigned",
        title="New Case Assigned to You",
        message=f"A case has been assigned to you: {case.subject}. Priority: {case.priority}",
        action_url="/cases",
        priority="high",
    )


def create_case(
    session: Session,
    type: str,
    subject: str,
    priority: str | None = None,
    description: str | None = None,
    sla_hours: float | None = None,
    alert_id: str | None = None,
    application_id: str | None = None,
    organization_id: str | None = None,
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
    context_data: dict | None = None,
    case_number: str | None = None,
    auto_assign: bool = True,
    user: User | None = None,
) -> Case:
    """Open a case and auto-assign it to the least-loaded org reviewer.

    Context is copied from the linked onboarding application or AML alert
    unless ``context_data`` is given. When ``user`` is a non-admin, a linked
    record from another organization is reported as not found.
    """
    if not type or not subject:
        raise BadRequestError("type and subject are required")

    priority = priority or "medium"
    now = utcnow()
    hours = sla_hours if sla_hours else get_settings().default_sla_hours

    if context_data is None:
        context_data = {}
        linked, label = None, None
        if application_id:
            linked, label = session.get(OnboardingApplication, application_id), "Application"
        elif alert_id:
            linked, label = session.get(AMLAlert, alert_id), "Alert"
        if linked is not None:
            if user is not None and not is_admin(user) and linked.organization_id != user.organization_id:
                logger.warning("%s tried to open a case on foreign %s %s", user.email, label, linked.id)
                raise NotFoundError(f"{label} not found")
            context_data = to_dict(linked)
            organization_id = linked.organization_id or organization_id

    if related_entity_type is None:
        if application_id:
            related_entity_type, related_entity_id = "OnboardingApplication", application_id
        elif alert_id:
            related_entity_type, related_entity_id = "AMLAlert", alert_id

    case = Case(
        organization_id=organization_id,
        case_number=case_number or generate_case_number(),
        type=type,
        priority=priority,
        status="new",
        subject=subject,
        description=description,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        context_data=context_data,
        sla_due_date=now + timedelta(hours=hours),
        sla_status=SlaStatus.ON_TIME.value,
        tags=[type, priority],
        created_date=now,
        updated_date=now,
    )
    session.add(case)

    if auto_assign:
        reviewer = _pick_reviewer(session, organization_id)
        if reviewer is not None:
            _apply_assignment(session, case, reviewer, "system", "System", None)

    session.commit()
    session.refresh(case)
    logger.info("Opened case %s (%s, %s)", case.case_number, type, priority)
    return case


def assign_case(
    session: Session,
    user: User,
    case_id: str,
    assignee_email: str,
    notes: str | None = None,
) -> Case:
    """Assign a case to an investigator in the case's organization (admin only)."""
    require_admin(user, "Forbidden: Admin access required")
    if not case_id or not assignee_email:
        raise BadRequestError("caseId and assigneeEmail required")

    case = session.get(Case, case_id)
    if case is None:
        raise NotFoundError("Case not found")

    assignee = session.exec(
        select(User).where(
            User.email == assignee_email.strip().lower(),
            User.organization_id == case.organization_id,
        )
    ).first()
    if assignee is None:
        raise NotFoundError("Assignee not found in organization")

    _apply_assignment(session, case, assignee, user.email, user.full_name, notes)
    record_event(
        session,
        event=f"Case {case.case_number} assigned to {assignee.email}",
        event_type="case_assigned",
        actor=user.email,
        organization_id=case.organization_id,
        workflow_id=case.id,
        details={"assignee": assignee.email, "notes": notes},
    )
    session.commit()
    session.refresh(case)
    return case


def list_cases(session: Session, user: User, status: str | None = None) -> list[Case]:
    query = select(Case)
    if user.role != "admin":
        query = query.where(Case.organization_id == user.organization_id)
    if status:
        query = query.where(Case.status == status)
    return list(session.exec(query.order_by(Case.created_date.desc())).all())
