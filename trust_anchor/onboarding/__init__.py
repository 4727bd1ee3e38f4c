"""Onboarding domain - application review, LEI issuance, and AML screening."""

from .lei import check_digits, validate_lei
from .router import router
from .service import approve_application, generate_lei, reject_application, run_aml_screening

__all__ = [
    "router",
    "approve_application",
    "check_digits",
    "generate_lei",
    "reject_application",
    "run_aml_screening",
    "validate_lei",
]
