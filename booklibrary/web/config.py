"""
Web host configuration using Pydantic Settings.

Provides centralized configuration for:
- Host identity and bind address
- Controller discovery
- Request tracing and OpenTelemetry export
- CORS
- Logging and metrics

All settings support environment variable overrides and .env file loading.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from booklibrary.shared.tracing.otel_config import EXPORTERS
from booklibrary.web.hosting.tracing import TraceLevel


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables with the
    prefix "BOOKLIBRARY_" (e.g., BOOKLIBRARY_TRACE_LEVEL).
    """

    # =========================================================================
    # Host Settings
    # =========================================================================

    app_name: str = Field(
        default="Book Library Web API",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="API version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode - enables verbose error traces"
    )
    environment: str = Field(
        default="production",
        description="Environment: development|staging|production"
    )
    host: str = Field(
        default="0.0.0.0",
        description="Bind host"
    )
    port: int = Field(
        default=8000,
        description="Bind port",
        gt=0,
        lt=65536
    )

    # =========================================================================
    # Controller Discovery
    # =========================================================================

    controller_packages: List[str] = Field(
        default=["booklibrary.web.controllers"],
        description="Packages scanned for ApiController subclasses at startup"
    )

    # =========================================================================
    # Request Tracing
    # =========================================================================

    trace_level: str = Field(
        default="DEBUG",
        description="Minimum level for request pipeline trace records: OFF|DEBUG|INFO|WARN|ERROR|FATAL"
    )
    trace_history_size: int = Field(
        default=256,
        description="Number of recent trace records kept in memory",
        ge=0,
        le=100000
    )

    tracing_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing"
    )
    tracing_exporter: str = Field(
        default="console",
        description="OpenTelemetry span exporter: none|console|otlp"
    )
    tracing_otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OTLP/HTTP traces endpoint (e.g. http://jaeger:4318/v1/traces)"
    )
    tracing_sample_rate: float = Field(
        default=1.0,
        description="Trace sampling rate (0.0-1.0, where 1.0 = 100%)",
        ge=0.0,
        le=1.0
    )

    # =========================================================================
    # CORS Settings
    # =========================================================================

    cors_enabled: bool = Field(
        default=False,
        description="Enable CORS middleware"
    )
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Allow credentials (cookies, authorization headers) in CORS"
    )
    cors_allow_methods: List[str] = Field(
        default=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        description="Allowed HTTP methods"
    )
    cors_allow_headers: List[str] = Field(
        default=["*"],
        description="Allowed HTTP headers"
    )

    # =========================================================================
    # Monitoring and Logging
    # =========================================================================

    metrics_enabled: bool = Field(
        default=True,
        description="Enable Prometheus metrics"
    )
    metrics_endpoint: str = Field(
        default="/metrics",
        description="Metrics endpoint path"
    )

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG|INFO|WARNING|ERROR|CRITICAL"
    )
    log_format: str = Field(
        default="json",
        description="Log format: json|text"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got: {v}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        allowed = ["json", "text"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed = ["development", "staging", "production"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("trace_level")
    @classmethod
    def validate_trace_level(cls, v: str) -> str:
        """Validate trace level names a TraceLevel member."""
        v_upper = v.upper()
        if v_upper not in TraceLevel.__members__:
            raise ValueError(
                f"trace_level must be one of {list(TraceLevel.__members__)}, got: {v}"
            )
        return v_upper

    @field_validator("tracing_exporter")
    @classmethod
    def validate_tracing_exporter(cls, v: str) -> str:
        """Validate the span exporter name."""
        v_lower = v.lower()
        if v_lower not in EXPORTERS:
            raise ValueError(f"tracing_exporter must be one of {list(EXPORTERS)}, got: {v}")
        return v_lower

    @field_validator("controller_packages")
    @classmethod
    def validate_controller_packages(cls, v: List[str]) -> List[str]:
        """Strip blanks and reject an empty package list."""
        packages = [p.strip() for p in v if p.strip()]
        if not packages:
            raise ValueError("controller_packages must name at least one package")
        return packages

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def minimum_trace_level(self) -> TraceLevel:
        """Trace level as a TraceLevel member."""
        return TraceLevel[self.trace_level]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    model_config = SettingsConfigDict(
        env_prefix="BOOKLIBRARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )


# HostConfiguration.properties key holding the Settings an app was created with
SETTINGS_PROPERTY = "booklibrary.settings"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded from:
    1. Environment variables with BOOKLIBRARY_ prefix
    2. .env file in the current directory
    3. Default values

    Returns:
        Settings: Cached settings instance
    """
    return Settings()
