"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Configuration
    service_host: str = Field(default="0.0.0.0", description="Service host")
    service_port: int = Field(default=8000, description="Service port")
    log_level: str = Field(default="INFO", description="Logging level")
    docs_enabled: bool = Field(
        default=True, description="Serve /docs, /redoc and /openapi.json"
    )
    git_sha: Optional[str] = Field(default=None, description="Build commit SHA")

    # Supabase Configuration
    supabase_url: str = Field(
        default="http://localhost:54321", description="Supabase project URL"
    )
    supabase_service_role_key: str = Field(
        default="", description="Supabase service role key"
    )
    supabase_anon_key: Optional[str] = Field(
        default=None,
        description="Supabase anon key, sent as apikey when validating user tokens",
    )
    supabase_db_password: Optional[str] = Field(
        default=None, description="Supabase database password for direct PostgreSQL connection"
    )
    database_url: Optional[str] = Field(
        default=None, description="Direct PostgreSQL connection URL (overrides Supabase URL construction)"
    )
    database_ssl: Optional[str] = Field(
        default="require",
        description="asyncpg ssl mode; set empty for local Postgres without TLS",
    )

    # Database Connection Pool
    db_pool_min_size: int = Field(default=0, description="Minimum connection pool size")
    db_pool_max_size: int = Field(default=10, description="Maximum connection pool size")

    # Auth
    auth_timeout: float = Field(
        default=10.0, description="Timeout in seconds for Supabase Auth token checks"
    )

    # Webhook relay
    n8n_api_key: Optional[str] = Field(
        default=None,
        description="Shared secret the workflow system presents on callbacks (X-N8N-API-Key)",
    )
    callback_base_url: Optional[str] = Field(
        default=None,
        description="Public base URL of this service, used to build callbackUrl for webhooks",
    )
    webhook_default_timeout_ms: int = Field(
        default=120_000,
        ge=1,
        description="Timeout applied when a destination has none configured",
    )

    # Client-side polling defaults
    poll_interval_seconds: float = Field(
        default=2.0, gt=0, description="Delay between job status checks"
    )
    poll_max_seconds: float = Field(
        default=180.0, gt=0, description="Give up on a job after this long"
    )

    # Rate limiting
    rate_limit_enabled: bool = Field(
        default=True, description="Enable rate limiting"
    )
    rate_limit_requests_per_minute: int = Field(
        default=60, description="Maximum requests per minute per IP"
    )

    # Request size limits
    max_request_body_size: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        description="Maximum request body size in bytes"
    )

    # Sentry Observability
    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking and performance monitoring"
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment tag (development, staging, production)"
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry performance tracing sample rate (0.0-1.0)"
    )
    sentry_profiles_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry profiling sample rate (0.0-1.0)"
    )

    @property
    def callback_url(self) -> str:
        """URL the workflow system posts job results to."""
        base = (self.callback_base_url or self.supabase_url).rstrip("/")
        return f"{base}/webhooks/callback"

    @property
    def auth_api_key(self) -> str:
        """apikey header value for Supabase Auth calls."""
        return self.supabase_anon_key or self.supabase_service_role_key


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
