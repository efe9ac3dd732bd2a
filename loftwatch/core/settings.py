"""Application settings using Pydantic."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LOFTWATCH_",
        case_sensitive=False,
    )

    # Application
    app_name: str = Field(default="Loftwatch", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(
        default="development",
        description="Deployment environment (development, staging, production)",
    )
    debug: bool = Field(default=False, description="Debug mode")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Path = Field(default=Path("logs"), description="Log file directory")

    # Relational store (PostgREST / Supabase)
    store_url: str = Field(
        default="http://localhost:54321/rest/v1",
        description="Base URL of the PostgREST endpoint",
    )
    store_api_key: Optional[str] = Field(
        default=None, description="API key sent with store requests"
    )
    store_timeout: float = Field(
        default=5.0, description="Store request timeout in seconds", gt=0, le=60
    )

    # Service toggles
    enable_caching: bool = Field(default=True, description="Enable loft cache")
    enable_health_monitoring: bool = Field(
        default=True, description="Enable periodic health checks"
    )
    enable_performance_monitoring: bool = Field(
        default=True, description="Enable reservation performance monitoring"
    )
    cache_warmup_enabled: bool = Field(
        default=True, description="Warm up the loft cache at startup"
    )
    warmup_loft_ids: list[str] = Field(
        default=[
            "test-loft-1",
            "test-loft-2",
            "test-loft-3",
            "test-loft-4",
            "test-loft-5",
        ],
        description="Loft ids loaded into the cache during warm-up",
    )

    # Loft cache
    cache_ttl_seconds: int = Field(
        default=300, description="Loft cache entry lifetime", ge=1, le=86400
    )
    cache_max_entries: int = Field(
        default=1000, description="Maximum cached lofts", ge=1, le=100000
    )

    # Health monitoring
    health_check_interval: int = Field(
        default=60, description="Seconds between health checks", ge=1, le=3600
    )
    response_time_warning_ms: int = Field(default=2000, ge=1)
    response_time_critical_ms: int = Field(default=5000, ge=1)
    error_rate_warning: float = Field(default=5.0, ge=0, le=100)
    error_rate_critical: float = Field(default=10.0, ge=0, le=100)
    cache_hit_rate_warning: float = Field(default=70.0, ge=0, le=100)
    memory_usage_warning: float = Field(default=80.0, ge=0, le=100)
    memory_usage_critical: float = Field(default=90.0, ge=0, le=100)
    min_conversion_rate: float = Field(default=15.0, ge=0, le=100)
    alert_history_size: int = Field(
        default=500, description="Resolved alerts kept in memory", ge=1
    )

    # Performance monitoring
    max_performance_samples: int = Field(
        default=10000, description="Sample buffer capacity", ge=100, le=1000000
    )
    sample_retention_hours: int = Field(
        default=24, description="Hours to keep performance samples", ge=1, le=168
    )
    stale_timer_minutes: int = Field(
        default=10, description="Minutes before an open timer is stale", ge=1
    )
    metrics_cleanup_interval: int = Field(
        default=300, description="Seconds between sample sweeps", ge=10
    )

    # Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port", ge=1, le=65535)
    reload: bool = Field(default=False, description="Enable auto-reload")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate deployment environment."""
        valid_environments = {"development", "staging", "production", "test"}
        v_lower = v.lower()
        if v_lower not in valid_environments:
            raise ValueError(
                f"Invalid environment. Must be one of: {valid_environments}"
            )
        return v_lower

    @property
    def is_production(self) -> bool:
        """Whether the service runs in production."""
        return self.environment == "production"


# Global settings instance
settings = Settings()
