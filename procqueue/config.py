"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from procqueue.constants import (
    DEFAULT_FINISHED_RETENTION,
    DEFAULT_HISTORY_SIZE,
    DEFAULT_MAX_CONCURRENT,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:3001"]

    # Queue Configuration
    queue_max_concurrent: int = Field(default=DEFAULT_MAX_CONCURRENT, ge=1)
    queue_job_timeout_seconds: float | None = None
    queue_finished_retention: int = Field(default=DEFAULT_FINISHED_RETENTION, ge=0)
    queue_history_size: int = Field(default=DEFAULT_HISTORY_SIZE, ge=1)

    # Processing
    image_max_width: int = 4000
    image_max_height: int = 4000

    # Rate Limiting
    rate_limit_requests_per_minute: int = 100

    # Observability
    otel_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://localhost:4317"
    otel_service_name: str = "procqueue"
    otel_console_export: bool = False
    log_level: str = "INFO"
    log_format: str = "json"  # json or console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
