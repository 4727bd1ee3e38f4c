"""Providers domain - third-party clients, provider routing, and health checks."""

from .clients import (
    AMLWatcherClient,
    FaciaClient,
    GeoIPClient,
    GleifClient,
    HttpPoster,
    get_aml_client,
    get_facia_client,
    get_geoip_client,
    get_gleif_client,
    get_http_poster,
)
from .router import router
from .schemas import (
    HealthCheckReport,
    ProviderHealth,
    ProviderSelection,
    ProviderSelectionRequest,
    ProviderStatus,
)
from .service import (
    check_provider,
    check_provider_health,
    rank_providers,
    select_optimal_provider,
    serves_country,
    uptime_percentage,
)

__all__ = [
    # Router
    "router",
    # Clients
    "AMLWatcherClient",
    "FaciaClient",
    "GeoIPClient",
    "GleifClient",
    "HttpPoster",
    "get_aml_client",
    "get_facia_client",
    "get_geoip_client",
    "get_gleif_client",
    "get_http_poster",
    # Schemas
    "HealthCheckReport",
    "ProviderHealth",
    "ProviderSelection",
    "ProviderSelectionRequest",
    "ProviderStatus",
    # Service
    "check_provider",
    "check_provider_health",
    "rank_providers",
    "select_optimal_provider",
    "serves_country",
    "uptime_percentage",
]
