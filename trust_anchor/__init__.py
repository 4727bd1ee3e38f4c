"""Trust Anchor Service - multi-tenant compliance backend.

Transaction monitoring (rule engine, screening, fraud models), business
onboarding with LEI issuance, case management, signed webhooks, and
verification workflows with tamper-evident provenance.

Environment Variables:
    DATABASE_URL: PostgreSQL URL. Default is a SQLite file under DATA_DIR.
    SIGNING_SECRET: HMAC key for provenance chains and data passports.
"""

from .core.config import Settings, get_settings
from .rules import RuleEngine, evaluate_condition

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "get_settings",
    "RuleEngine",
    "evaluate_condition",
]
