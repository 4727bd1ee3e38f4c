"""Provider routing and health checks.

Routing picks the healthiest, highest-priority provider for a service. Health
checks call each active provider and feed its status and uptime back into
routing.
"""

import logging

from sqlmodel import Session, select

from trust_anchor.audit.service import record_event
from trust_anchor.core.auth import require_admin
from trust_anchor.core.errors import IntegrationError, NotFoundError
from trust_anchor.core.models import Provider, User, utcnow

from .clients import HttpPoster
from .schemas import (
    FallbackProvider,
    HealthCheckReport,
    MaskedCredentials,
    ProviderHealth,
    ProviderSelection,
    ProviderStatus,
    SelectedProvider,
)

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY_WEIGHT = 10
FAILURE_THRESHOLD = 3
DEGRADED_UPTIME = 95.0
DEFAULT_STATUS_PATH = "/status"

STATUS_ORDER = {
    ProviderStatus.ACTIVE.value: 0,
    ProviderStatus.DEGRADED.value: 1,
    ProviderStatus.OFFLINE.value: 2,
}


def _weight(provider: Provider) -> int:
    return provider.priority_weight if provider.priority_weight is not None else DEFAULT_PRIORITY_WEIGHT


def serves_country(provider: Provider, country_code: str) -> bool:
    """Whether the provider's country routing admits ``country_code``."""
    rules = provider.country_routing_rules or {}
    if not rules.get("enabled"):
        return True
    countries = rules.get("countries") or []
    if not countries:
        return True
    return country_code in countries


def rank_providers(
    providers: list[Provider],
    service_type: str,
    country_code: str | None = None,
    exclude_providers: list[str] | None = None,
) -> list[Provider]:
    """Candidates for a service, best first.

    Offline, inactive and excluded providers are dropped. When a country is
    given and at least one provider routes it, only those are kept; otherwise
    every candidate remains as a fallback.
    """
    excluded = set(exclude_providers or [])
    candidates = [
        p for p in providers
        if p.is_active
        and p.service_type == service_type
        and p.id not in excluded
        and p.status != ProviderStatus.OFFLINE.value
    ]

    if country_code and candidates:
        country_specific = [p for p in candidates if serves_country(p, country_code)]
        if country_specific:
            candidates = country_specific

    candidates.sort(key=lambda p: (_weight(p), STATUS_ORDER.get(p.status, 2)))
    return candidates


def _mask(value: str | None) -> str | None:
    return "***" if value else None


def select_optimal_provider(
    session: Session,
    service_type: str,
    country_code: str | None = None,
    exclude_providers: list[str] | None = None,
) -> ProviderSelection:
    """Pick the provider to route a ``service_type`` request to."""
    providers = list(session.exec(select(Provider).where(Provider.service_type == service_type)).all())
    ranked = rank_providers(providers, service_type, country_code, exclude_providers)

    if not ranked:
        raise NotFoundError(f"No available providers for service: {service_type}")

    selected = ranked[0]
    return ProviderSelection(
        provider=SelectedProvider(
            id=selected.id,
            name=selected.name,
            service_type=selected.service_type,
            endpoint=selected.endpoint,
            status=selected.status,
            uptime_percentage=selected.uptime_percentage,
            priority_weight=_weight(selected),
            country_routing=selected.country_routing_rules or {},
            credentials=MaskedCredentials(
                api_key=_mask(selected.api_key),
                client_id=_mask(selected.client_id),
                client_secret=_mask(selected.client_secret),
            ),
        ),
        fallbacks=[
            FallbackProvider(id=p.id, name=p.name, status=p.status, priority_weight=_weight(p))
            for p in ranked[1:]
        ],
    )


# =============================================================================
# Health checks
# =============================================================================


def uptime_percentage(provider: Provider) -> float:
    total = provider.total_requests or 0
    if not total:
        return 100.0
    return round((total - (provider.failed_requests or 0)) / total * 100, 2)


def check_provider(provider: Provider, http: HttpPoster) -> ProviderHealth:
    """Call one provider's health endpoint and update its health counters.

    Providers without a ``health_check_endpoint`` are called on ``/status``
    with their API key. Any failure marks the provider degraded; three in a
    row take it offline. A provider whose uptime falls under 95% stays
    degraded even when the latest check passes.
    """
    path = provider.health_check_endpoint or DEFAULT_STATUS_PATH
    url = f"{provider.endpoint.rstrip('/')}{path}"
    headers = {}
    if not provider.health_check_endpoint and provider.api_key:
        headers["Authorization"] = f"Bearer {provider.api_key}"

    error = None
    response_time = None
    try:
        status_code, response_time = http.check(url, headers)
    except IntegrationError as e:
        error = e.message
    else:
        if not 200 <= status_code < 300:
            error = f"Health endpoint returned {status_code}"

    provider.total_requests = (provider.total_requests or 0) + 1
    if error:
        provider.failed_requests = (provider.failed_requests or 0) + 1
        provider.consecutive_failures = (provider.consecutive_failures or 0) + 1
        logger.warning("Provider %s health check failed: %s", provider.name, error)
    else:
        provider.consecutive_failures = 0

    uptime = uptime_percentage(provider)
    if provider.consecutive_failures >= FAILURE_THRESHOLD:
        status = ProviderStatus.OFFLINE.value
    elif provider.consecutive_failures or uptime < DEGRADED_UPTIME:
        status = ProviderStatus.DEGRADED.value
    else:
        status = ProviderStatus.ACTIVE.value

    now = utcnow()
    provider.status = status
    provider.uptime_percentage = uptime
    provider.avg_response_time_ms = response_time if response_time is not None else provider.avg_response_time_ms
    provider.last_health_check = now
    provider.updated_date = now

    return ProviderHealth(
        provider_id=provider.id,
        provider=provider.name,
        status=status,
        uptime=uptime,
        response_time_ms=response_time,
        error=error,
    )


def check_provider_health(session: Session, user: User, http: HttpPoster) -> HealthCheckReport:
    """Check every active provider that has an endpoint. Admin only."""
    require_admin(user, "Admin access required")

    providers = session.exec(
        select(Provider).where(Provider.is_active == True).order_by(Provider.name)  # noqa: E712
    ).all()
    results = []
    for provider in providers:
        if not provider.endpoint:
            continue
        results.append(check_provider(provider, http))
        session.add(provider)

    record_event(
        session,
        event="Provider health check completed",
        event_type="provider_health_check",
        actor=user.email,
        workflow_id="provider_health_check",
        details={"results": [r.model_dump() for r in results]},
    )
    session.commit()
    return HealthCheckReport(checked=len(results), results=results)
