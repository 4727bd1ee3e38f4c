"""Monitoring domain - perpetual AML and KYB re-screening schedules."""

from .router import router
from .schemas import (
    ApplicationMonitoringRequest,
    Frequency,
    MonitoringRun,
    MonitoringType,
    ScheduleCreate,
    ScheduleStatus,
    ScheduleStatusUpdate,
)
from .service import (
    create_schedule,
    list_schedules,
    next_check_date,
    registry_snapshot,
    run_aml_monitoring,
    run_due_schedules,
    run_kyb_monitoring,
    run_schedule,
    schedule_application_monitoring,
    set_schedule_status,
)

__all__ = [
    "router",
    "ApplicationMonitoringRequest",
    "Frequency",
    "MonitoringRun",
    "MonitoringType",
    "ScheduleCreate",
    "ScheduleStatus",
    "ScheduleStatusUpdate",
    "create_schedule",
    "list_schedules",
    "next_check_date",
    "registry_snapshot",
    "run_aml_monitoring",
    "run_due_schedules",
    "run_kyb_monitoring",
    "run_schedule",
    "schedule_application_monitoring",
    "set_schedule_status",
]
