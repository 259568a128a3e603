"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Flowless"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    # Secret key MUST be provided via environment (e.g. SECRET_KEY in .env)
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # API
    api_prefix: str = "/api"
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Database
    database_url: str = "sqlite+aiosqlite:///./flowless.db"
    db_ssl_mode: str = "disable" # "require" for production
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Credential store. Falls back to secret_key when unset.
    credential_encryption_key: Optional[str] = None

    # Segments
    segment_max_results: int = 10000
    segment_query_timeout_seconds: float = 30.0

    # Debug request capture (entries kept per user)
    request_capture_limit: int = 100

    # Workflow dispatch: "inline" runs matching workflows inside the ingestion
    # request, "queued" hands them to the background event consumer.
    workflow_dispatch_mode: Literal["inline", "queued"] = "inline"
    event_bus_maxsize: int = 10000
    execution_cleanup_interval_seconds: int = 300
    execution_stale_after_minutes: int = 30

    # Promo code claims
    promo_claim_attempts: int = 3

    # Outbound HTTP
    provider_timeout_seconds: float = 15.0
    webhook_timeout_seconds: float = 10.0
    provider_failure_threshold: int = 5
    provider_recovery_timeout_seconds: int = 60

    # Push delivery gateway; when unset pushes are logged instead of sent
    push_gateway_url: Optional[str] = None
    push_gateway_token: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
