"""TMaaS API endpoints."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User
from trust_anchor.providers.clients import (
    AMLWatcherClient,
    GeoIPClient,
    HttpPoster,
    get_aml_client,
    get_geoip_client,
    get_http_poster,
)

from . import service
from .enrichment import enrich_transaction
from .schemas import (
    AnalyticsRequest,
    AnalyticsResponse,
    EnrichmentRequest,
    ScreenTransactionRequest,
    ScreeningResult,
    StatusUpdateRequest,
)

router = APIRouter(prefix="/tmaas", tags=["tmaas"])


@router.post("/screen", response_model=ScreeningResult)
def screen_transaction(
    request: ScreenTransactionRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    aml_client: AMLWatcherClient = Depends(get_aml_client),
    poster: HttpPoster = Depends(get_http_poster),
    geoip: GeoIPClient = Depends(get_geoip_client),
) -> dict:
    """
    Screen a transaction.

    Combines AML screening, velocity heuristics and the organization's rules
    into a risk score and an approve / block / flag decision.
    """
    return service.screen_transaction(session, user, request, aml_client, poster, geoip)


@router.post("/enrich")
def enrich(
    request: EnrichmentRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    geoip: GeoIPClient = Depends(get_geoip_client),
) -> dict:
    """Geolocate the IP and summarize the sending account's recent history."""
    enriched = enrich_transaction(session, user.organization_id, geoip, request.ip_address, request.from_account)
    return {"success": True, "enriched_data": enriched}


@router.post("/transactions/{transaction_id}/status")
def update_transaction_status(
    transaction_id: str,
    request: StatusUpdateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    poster: HttpPoster = Depends(get_http_poster),
) -> dict:
    """Apply a manual review decision."""
    return service.update_transaction_status(
        session,
        user,
        transaction_id,
        request.new_status.value if request.new_status else None,
        poster,
        resolution_notes=request.resolution_notes,
        escalate_to_case=request.escalate_to_case,
    )


@router.post("/analytics", response_model=AnalyticsResponse)
def get_analytics(
    request: AnalyticsRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> dict:
    """Screening performance, rule effectiveness, alert trends and risk exposure."""
    return service.get_analytics(session, user, request.days, request.tmaas_config_id)
