"""Provider routing schemas."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ProviderStatus(str, Enum):
    ACTIVE = "active"
    DEGRADED = "degraded"
    OFFLINE = "offline"


class ProviderSelectionRequest(BaseModel):
    """Request to pick the best provider for a service."""

    service_type: str = Field(..., min_length=1)
    country_code: Optional[str] = Field(None, min_length=2, max_length=3)
    exclude_providers: list[str] = Field(default_factory=list)


class MaskedCredentials(BaseModel):
    api_key: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None


class SelectedProvider(BaseModel):
    id: str
    name: str
    service_type: str
    endpoint: Optional[str] = None
    status: str
    uptime_percentage: Optional[float] = None
    priority_weight: int
    country_routing: dict = Field(default_factory=dict)
    credentials: MaskedCredentials


class FallbackProvider(BaseModel):
    id: str
    name: str
    status: str
    priority_weight: int


class ProviderSelection(BaseModel):
    success: bool = True
    provider: SelectedProvider
    fallbacks: list[FallbackProvider] = Field(default_factory=list)


class ProviderHealth(BaseModel):
    provider_id: str
    provider: str
    status: str
    uptime: float
    response_time_ms: Optional[float] = None
    error: Optional[str] = None


class HealthCheckReport(BaseModel):
    success: bool = True
    checked: int
    results: list[ProviderHealth] = Field(default_factory=list)
