"""TMaaS domain - transaction screening, enrichment, review, and analytics."""

from .enrichment import enrich_transaction, geo_ip, velocity_history
from .router import router
from .schemas import (
    AnalyticsRequest,
    AnalyticsResponse,
    EnrichmentRequest,
    ScreenTransactionRequest,
    ScreeningResult,
    StatusUpdateRequest,
    TransactionStatus,
)
from .service import get_analytics, get_risk_level, screen_transaction, update_transaction_status

__all__ = [
    "router",
    "AnalyticsRequest",
    "AnalyticsResponse",
    "EnrichmentRequest",
    "ScreenTransactionRequest",
    "ScreeningResult",
    "StatusUpdateRequest",
    "TransactionStatus",
    "enrich_transaction",
    "geo_ip",
    "get_analytics",
    "get_risk_level",
    "screen_transaction",
    "update_transaction_status",
    "velocity_history",
]
