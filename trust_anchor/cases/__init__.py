"""Cases domain - investigation cases, assignment, and SLA tracking."""

from .router import router
from .schemas import CaseAssignRequest, CaseCreateRequest, CaseCreated, CasePriority, SlaStatus
from .service import (
    assign_case,
    compute_sla_status,
    create_case,
    generate_case_number,
    list_cases,
    refresh_sla_status,
)

__all__ = [
    "router",
    "CaseAssignRequest",
    "CaseCreateRequest",
    "CaseCreated",
    "CasePriority",
    "SlaStatus",
    "assign_case",
    "compute_sla_status",
    "create_case",
    "generate_case_number",
    "list_cases",
    "refresh_sla_status",
]
