"""
Perpetual AML and KYB monitoring.

A schedule re-screens one entity on a fixed cadence:

- AML runs search the watchlists and raise an ``AMLAlert`` for every match
  scoring at or above the schedule's ``alert_threshold``.
- KYB runs fetch the entity's GLEIF record and raise a ``KYBAlert`` for every
  registry field that changed since the previous run. The first run only
  records the baseline.

Each run notifies the schedule's ``notify_emails`` and the organization's
webhooks about new alerts, then moves ``next_check_date`` forward.
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta

from sqlmodel import Session, select

from trust_anchor.core.auth import enforce_tenant, is_admin, require_admin
from trust_anchor.core.errors import BadRequestError, IntegrationError, NotFoundError
from trust_anchor.core.models import (
    AMLAlert,
    KYBAlert,
    MonitoringSchedule,
    User,
    to_dict,
    utcnow,
)
from trust_anchor.notifications.service import create_notification
from trust_anchor.onboarding.service import authorize_application, get_application
from trust_anchor.providers.clients import AMLWatcherClient, GleifClient, HttpPoster
from trust_anchor.webhooks.service import dispatch_event

from .schemas import Frequency, MonitoringRun, MonitoringType, ScheduleCreate, ScheduleStatus

logger = logging.getLogger(__name__)

AML_CATEGORIES = ["PEP", "Sanctions", "SIP", "Adverse Media"]
FREQUENCY_MONTHS = {Frequency.MONTHLY.value: 1, Frequency.QUARTERLY.value: 3}
FREQUENCY_DAYS = {Frequency.DAILY.value: 1, Frequency.WEEKLY.value: 7}

# Registry field -> path inside a GLEIF record's ``attributes``
REGISTRY_FIELDS = {
    "legal_name": ("entity", "legalName", "name"),
    "entity_status": ("entity", "status"),
    "registration_status": ("registration", "status"),
    "country": ("entity", "legalAddress", "country"),
}
HIGH_SEVERITY_FIELDS = {"entity_status", "registration_status"}


# =============================================================================
# Scheduling helpers
# =============================================================================


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def next_check_date(frequency: str | None, interval_days: int | None = None, now: datetime | None = None) -> datetime:
    """When a schedule is next due. ``interval_days`` overrides the frequency."""
    now = now or utcnow()
    if interval_days:
        return now + timedelta(days=interval_days)
    if frequency in FREQUENCY_DAYS:
        return now + timedelta(days=FREQUENCY_DAYS[frequency])
    return _add_months(now, FREQUENCY_MONTHS.get(frequency, 3))


def aml_severity(match_score: float) -> str:
    if match_score >= 95:
        return "critical"
    if match_score >= 90:
        return "high"
    if match_score >= 80:
        return "medium"
    return "low"


def aml_alert_type(categories: list | None) -> str:
    first = (categories or [None])[0]
    if first == "Adverse Media":
        return "adverse_media"
    if first == "PEP":
        return "pep_match"
    return "sanction_hit"


def registry_snapshot(record: dict) -> dict:
    """The monitored fields of a GLEIF ``/lei-records/{lei}`` response."""
    attributes = (record.get("data") or {}).get("attributes") or {}
    snapshot = {}
    for field, path in REGISTRY_FIELDS.items():
        value = attributes
        for key in path:
            value = value.get(key) if isinstance(value, dict) else None
        snapshot[field] = value
    return snapshot


# =============================================================================
# Schedules
# =============================================================================


def _authorize(session: Session, user: User, schedule: MonitoringSchedule) -> None:
    if not is_admin(user):
        enforce_tenant(session, user, schedule.organization_id, "MonitoringSchedule")


def get_schedule(session: Session, user: User, schedule_id: str | None) -> MonitoringSchedule:
    if not schedule_id:
        raise BadRequestError("schedule_id required")
    schedule = session.get(MonitoringSchedule, schedule_id)
    if schedule is None:
        raise NotFoundError("Schedule not found")
    _authorize(session, user, schedule)
    return schedule


def create_schedule(session: Session, user: User, request: ScheduleCreate) -> MonitoringSchedule:
    """Create a schedule in the caller's organization (admins may pick one)."""
    org_id = request.organization_id if (is_admin(user) and request.organization_id) else user.organization_id
    if request.monitoring_type != MonitoringType.AML and not request.entity_lei:
        raise BadRequestError("entity_lei is required for KYB monitoring")

    schedule = MonitoringSchedule(
        organization_id=org_id,
        application_id=request.application_id,
        entity_name=request.entity_name,
        entity_lei=request.entity_lei,
        country=request.country,
        monitoring_type=request.monitoring_type.value,
        frequency=request.frequency.value,
        interval_days=request.interval_days,
        alert_threshold=request.alert_threshold,
        notify_emails=[email.strip().lower() for email in request.notify_emails],
        next_check_date=next_check_date(request.frequency.value, request.interval_days),
    )
    session.add(schedule)
    session.commit()
    session.refresh(schedule)
    logger.info("Created %s monitoring schedule %s for %s", schedule.monitoring_type, schedule.id, schedule.entity_name)
    return schedule


def list_schedules(session: Session, user: User) -> list[MonitoringSchedule]:
    query = select(MonitoringSchedule)
    if not is_admin(user):
        query = query.where(MonitoringSchedule.organization_id == user.organization_id)
    return list(session.exec(query.order_by(MonitoringSchedule.created_date.desc())).all())


def set_schedule_status(session: Session, user: User, schedule_id: str, status: str) -> MonitoringSchedule:
    """Pause or resume a schedule."""
    schedule = get_schedule(session, user, schedule_id)
    schedule.status = status
    schedule.updated_date = utcnow()
    session.add(schedule)
    session.commit()
    session.refresh(schedule)
    return schedule


# =============================================================================
# Runs
# =============================================================================


def _screen_aml(session: Session, user: User, schedule: MonitoringSchedule, aml_client: AMLWatcherClient) -> list[AMLAlert]:
    result = aml_client.search(schedule.entity_name, AML_CATEGORIES, schedule.alert_threshold)
    matches = (result.get("data") or {}).get("matches") or []

    alerts = []
    for match in matches:
        score = match.get("match_score") or 0
        if score < schedule.alert_threshold:
            continue
        alert = AMLAlert(
            organization_id=schedule.organization_id,
            user_id=user.id,
            workflow_id=schedule.application_id,
            type=aml_alert_type(match.get("categories")),
            severity=aml_severity(score),
            details={
                "entity_name": match.get("name"),
                "match_score": score,
                "categories": match.get("categories") or [],
                "notes": match.get("notes"),
                "source": "AML Watcher",
                "monitored_entity": schedule.entity_name,
                "monitoring_schedule_id": schedule.id,
            },
            status="new",
        )
        session.add(alert)
        alerts.append(alert)
    return alerts


def _screen_registry(session: Session, schedule: MonitoringSchedule, gleif: GleifClient) -> list[KYBAlert]:
    if not schedule.entity_lei:
        raise BadRequestError("entity_lei is required for KYB monitoring")

    snapshot = registry_snapshot(gleif.get_details(schedule.entity_lei))
    previous = schedule.registry_snapshot
    schedule.registry_snapshot = snapshot
    if previous is None:
        return []

    now = utcnow()
    alerts = []
    for field in REGISTRY_FIELDS:
        old, new = previous.get(field), snapshot.get(field)
        if old == new:
            continue
        alert = KYBAlert(
            organization_id=schedule.organization_id,
            monitoring_schedule_id=schedule.id,
            entity_name=schedule.entity_name,
            entity_lei=schedule.entity_lei,
            type="registry_change",
            severity="high" if field in HIGH_SEVERITY_FIELDS else "medium",
            details={
                "field_changed": field,
                "old_value": old,
                "new_value": new,
                "change_date": now.isoformat(),
                "source": "GLEIF",
            },
            status="new",
        )
        session.add(alert)
        alerts.append(alert)
    return alerts


def _notify(session: Session, schedule: MonitoringSchedule, kind: str, alerts: list) -> None:
    label = kind.split("_")[0].upper()
    for email in schedule.notify_emails or []:
        for alert in alerts:
            create_notification(
                session,
                recipient_email=email,
                type=kind,
                title=f"{label} Alert: {schedule.entity_name}",
                message=f"{label} monitoring raised a {alert.severity} {alert.type} alert for {schedule.entity_name}.",
                priority="high" if alert.severity in ("high", "critical") else "medium",
                organization_id=schedule.organization_id,
                context={"monitoring_schedule_id": schedule.id, "alert_id": alert.id},
            )


def _run(
    session: Session,
    user: User,
    schedule: MonitoringSchedule,
    aml_client: AMLWatcherClient | None,
    gleif: GleifClient | None,
    poster: HttpPoster | None,
) -> MonitoringRun:
    checks = 0
    raised: dict[str, list] = {}
    if aml_client is not None:
        raised["aml_alert"] = _screen_aml(session, user, schedule, aml_client)
        checks += 1
    if gleif is not None:
        raised["kyb_alert"] = _screen_registry(session, schedule, gleif)
        checks += 1

    new_alerts = [alert for alerts in raised.values() for alert in alerts]
    now = utcnow()
    schedule.last_check_date = now
    schedule.next_check_date = next_check_date(schedule.frequency, schedule.interval_days, now)
    schedule.check_count = (schedule.check_count or 0) + checks
    schedule.alert_count = (schedule.alert_count or 0) + len(new_alerts)
    schedule.updated_date = now
    session.add(schedule)
    for kind, alerts in raised.items():
        _notify(session, schedule, kind, alerts)
    session.commit()

    logger.info("Monitoring run for schedule %s raised %d alerts", schedule.id, len(new_alerts))
    if poster is not None:
        for kind, alerts in raised.items():
            if alerts:
                dispatch_event(
                    session,
                    poster,
                    kind,
                    workflow_id=schedule.id,
                    application_id=schedule.application_id,
                    data={"entity_name": schedule.entity_name, "alert_ids": [a.id for a in alerts]},
                    organization_id=schedule.organization_id,
                )

    return MonitoringRun(
        schedule_id=schedule.id,
        checks_performed=checks,
        alerts_generated=len(new_alerts),
        new_alerts=[to_dict(a) for a in new_alerts],
        next_check=schedule.next_check_date.isoformat(),
    )


def run_aml_monitoring(
    session: Session,
    user: User,
    schedule_id: str | None,
    aml_client: AMLWatcherClient,
    poster: HttpPoster | None = None,
) -> MonitoringRun:
    schedule = get_schedule(session, user, schedule_id)
    return _run(session, user, schedule, aml_client, None, poster)


def run_kyb_monitoring(
    session: Session,
    user: User,
    schedule_id: str | None,
    gleif: GleifClient,
    poster: HttpPoster | None = None,
) -> MonitoringRun:
    schedule = get_schedule(session, user, schedule_id)
    return _run(session, user, schedule, None, gleif, poster)


def run_schedule(
    session: Session,
    user: User,
    schedule_id: str | None,
    aml_client: AMLWatcherClient,
    gleif: GleifClient,
    poster: HttpPoster | None = None,
) -> MonitoringRun:
    """Run whichever checks the schedule's ``monitoring_type`` names."""
    schedule = get_schedule(session, user, schedule_id)
    return _run(
        session,
        user,
        schedule,
        aml_client if "aml" in schedule.monitoring_type else None,
        gleif if "kyb" in schedule.monitoring_type else None,
        poster,
    )


def run_due_schedules(
    session: Session,
    user: User,
    aml_client: AMLWatcherClient,
    gleif: GleifClient,
    poster: HttpPoster | None = None,
) -> dict:
    """Run every active schedule whose next check is due. Admin only.

    A provider failure on one schedule is reported and does not stop the rest.
    """
    require_admin(user, "Admin access required")
    due = session.exec(
        select(MonitoringSchedule).where(
            MonitoringSchedule.status == ScheduleStatus.ACTIVE.value,
            MonitoringSchedule.next_check_date <= utcnow(),
        )
    ).all()

    runs, failures = [], []
    for schedule in due:
        try:
            runs.append(run_schedule(session, user, schedule.id, aml_client, gleif, poster))
        except (IntegrationError, BadRequestError) as e:
            session.rollback()
            logger.warning("Monitoring run for schedule %s failed: %s", schedule.id, e.message)
            failures.append({"schedule_id": schedule.id, "error": e.message})

    return {
        "success": True,
        "schedules_run": len(runs),
        "alerts_generated": sum(r.alerts_generated for r in runs),
        "failures": failures,
    }


def schedule_application_monitoring(
    session: Session,
    user: User,
    application_id: str | None,
    interval_days: int,
    aml_client: AMLWatcherClient,
    poster: HttpPoster | None = None,
) -> dict:
    """Put an approved application's business under perpetual AML monitoring.

    The first AML check runs immediately.
    """
    application = get_application(session, application_id)
    authorize_application(session, user, application)
    if application.status != "approved":
        raise BadRequestError("Application not approved")

    schedule = MonitoringSchedule(
        organization_id=application.organization_id,
        application_id=application.id,
        entity_name=application.legal_name,
        entity_lei=application.generated_lei,
        country=(application.legal_address or {}).get("country"),
        monitoring_type=MonitoringType.AML.value,
        frequency=Frequency.QUARTERLY.value,
        interval_days=interval_days,
    )
    session.add(schedule)
    session.flush()

    run = _run(session, user, schedule, aml_client, None, poster)
    session.refresh(schedule)
    return {"status": "success", "schedule": to_dict(schedule), "aml_check_result": run.model_dump()}
