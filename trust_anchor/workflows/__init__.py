"""Workflows domain - provider orchestration with signed provenance."""

from .provenance import append_link, canonical_json, verify_chain
from .router import router
from .schemas import EntityData, ExecuteWorkflowRequest, WorkflowType
from .service import execute_workflow, verify_provenance_chain, verify_workflow

__all__ = [
    "router",
    "EntityData",
    "ExecuteWorkflowRequest",
    "WorkflowType",
    "append_link",
    "canonical_json",
    "execute_workflow",
    "verify_chain",
    "verify_provenance_chain",
    "verify_workflow",
]
