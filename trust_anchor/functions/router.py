"""Function invocation endpoint."""

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from trust_anchor.core.auth import get_current_user
from trust_anchor.core.database import get_session
from trust_anchor.core.models import User
from trust_anchor.providers.clients import (
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

from .registry import FUNCTIONS, FunctionContext, invoke

router = APIRouter(prefix="/functions", tags=["functions"])


@router.get("")
def list_functions() -> dict:
    return {"functions": sorted(FUNCTIONS)}


@router.post("/{name}")
def invoke_function(
    name: str,
    body: dict[str, Any] = Body(default_factory=dict),
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    aml_client: AMLWatcherClient = Depends(get_aml_client),
    gleif: GleifClient = Depends(get_gleif_client),
    facia: FaciaClient = Depends(get_facia_client),
    poster: HttpPoster = Depends(get_http_poster),
    geoip: GeoIPClient = Depends(get_geoip_client),
) -> dict:
    """Invoke a named server function with a JSON body."""
    ctx = FunctionContext(
        session=session,
        user=user,
        aml_client=aml_client,
        gleif=gleif,
        facia=facia,
        poster=poster,
        geoip=geoip,
    )
    return invoke(name, ctx, body)
