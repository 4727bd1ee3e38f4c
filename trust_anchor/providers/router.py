"""Provider routing and health API endpoints."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User

from . import service
from .clients import HttpPoster, get_http_poster
from .schemas import HealthCheckReport, ProviderSelection, ProviderSelectionRequest

router = APIRouter(prefix="/providers", tags=["providers"])


@router.post("/select", response_model=ProviderSelection)
def select_provider(
    request: ProviderSelectionRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> ProviderSelection:
    """Select the best available provider for a service, with ordered fallbacks."""
    return service.select_optimal_provider(
        session,
        service_type=request.service_type,
        country_code=request.country_code,
        exclude_providers=request.exclude_providers,
    )


@router.post("/health", response_model=HealthCheckReport)
def check_provider_health(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    http: HttpPoster = Depends(get_http_poster),
) -> HealthCheckReport:
    """Call every active provider's health endpoint and update status and uptime. Admin only."""
    return service.check_provider_health(session, user, http)
