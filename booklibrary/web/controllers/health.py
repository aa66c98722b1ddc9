"""Liveness and readiness endpoints."""

from typing import Optional

from fastapi import status
from starlette.responses import Response

from booklibrary.web.config import SETTINGS_PROPERTY, Settings, get_settings
from booklibrary.web.hosting import ApiController, http_get, route
from booklibrary.web.models import HealthResponse, HealthStatus, ReadinessResponse


class HealthController(ApiController):
    """Health checks for container orchestration."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings

    @property
    def settings(self) -> Settings:
        """
        Settings injected by the resolver, else those the host was created
        with, else the cached environment settings.
        """
        if self._settings is not None:
            return self._settings
        if self.configuration is not None and SETTINGS_PROPERTY in self.configuration.properties:
            return self.configuration.properties[SETTINGS_PROPERTY]
        return get_settings()

    @http_get
    @route("health", name="Health")
    def health(self) -> HealthResponse:
        """
        Health check endpoint.

        Returns basic health status without checking dependencies.
        Use for container health checks.
        """
        return HealthResponse(
            status=HealthStatus.HEALTHY,
            service=self.settings.app_name,
            version=self.settings.app_version,
            environment=self.settings.environment,
        )

    @http_get
    @route("ready", name="Ready")
    def ready(self) -> Response:
        """
        Readiness check endpoint.

        Ready once the host is initialized with at least one controller and
        a trace writer installed.
        """
        config = self.configuration
        checks = {
            "controllers": HealthStatus.HEALTHY
            if config.is_initialized and config.controllers
            else HealthStatus.UNHEALTHY,
            "tracing": HealthStatus.HEALTHY
            if config.services.get_trace_writer() is not None
            else HealthStatus.DEGRADED,
        }

        ready = checks["controllers"] == HealthStatus.HEALTHY
        body = ReadinessResponse(
            status="ready" if ready else "not_ready",
            service=self.settings.app_name,
            version=self.settings.app_version,
            checks=checks,
        )
        return config.formatters.json_formatter.create_response(
            body,
            status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        )
