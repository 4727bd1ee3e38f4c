"""Perpetual monitoring API endpoints."""

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User, to_dict
from trust_anchor.providers.clients import (
    AMLWatcherClient,
    GleifClient,
    HttpPoster,
    get_aml_client,
    get_gleif_client,
    get_http_poster,
)

from . import service
from .schemas import ApplicationMonitoringRequest, MonitoringRun, ScheduleCreate, ScheduleStatusUpdate

router = APIRouter(prefix="/monitoring", tags=["monitoring"])


@router.get("/schedules")
def list_schedules(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    return {"schedules": [to_dict(s) for s in service.list_schedules(session, user)]}


@router.post("/schedules", status_code=status.HTTP_201_CREATED)
def create_schedule(
    request: ScheduleCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    return to_dict(service.create_schedule(session, user, request))


@router.post("/schedules/{schedule_id}/status")
def set_schedule_status(
    schedule_id: str,
    request: ScheduleStatusUpdate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Pause or resume a schedule."""
    return to_dict(service.set_schedule_status(session, user, schedule_id, request.status.value))


@router.post("/schedules/{schedule_id}/run", response_model=MonitoringRun)
def run_schedule(
    schedule_id: str,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    aml_client: AMLWatcherClient = Depends(get_aml_client),
    gleif: GleifClient = Depends(get_gleif_client),
    poster: HttpPoster = Depends(get_http_poster),
) -> MonitoringRun:
    """Run the schedule's checks now."""
    return service.run_schedule(session, user, schedule_id, aml_client, gleif, poster)


@router.post("/run-due")
def run_due_schedules(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    aml_client: AMLWatcherClient = Depends(get_aml_client),
    gleif: GleifClient = Depends(get_gleif_client),
    poster: HttpPoster = Depends(get_http_poster),
) -> dict:
    """Run every active schedule that is due. Admin only; meant for a periodic job."""
    return service.run_due_schedules(session, user, aml_client, gleif, poster)


@router.post("/applications/{application_id}")
def schedule_application_monitoring(
    application_id: str,
    request: ApplicationMonitoringRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    aml_client: AMLWatcherClient = Depends(get_aml_client),
    poster: HttpPoster = Depends(get_http_poster),
) -> dict:
    """Monitor an approved application's business and run the first AML check."""
    return service.schedule_application_monitoring(
        session, user, application_id, request.interval_days, aml_client, poster
    )
