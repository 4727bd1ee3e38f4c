"""Application configuration."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API
    app_name: str = "Trust Anchor Service"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: str = "*"

    # Storage
    database_url: str | None = None
    data_dir: str = "data"

    # Signing and identifiers
    signing_secret: str = "change-me"
    lei_prefix: str = "TAS0"

    # Retention / SLA
    audit_retention_days: int = 2555  # 7 years
    default_sla_hours: int = 24

    # Outbound integrations
    http_timeout_seconds: float = 10.0
    amlwatcher_base_url: str = "https://api.amlwatcher.com"
    amlwatcher_api_key: str | None = None
    amlwatcher_client_id: str | None = None
    amlwatcher_client_secret: str | None = None
    gleif_base_url: str = "https://api.gleif.org/api/v1"
    facia_base_url: str = "https://api.facia.ai"
    facia_api_key: str | None = None
    geoip_base_url: str = "http://ip-api.com"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
