"""
FastAPI application entry point for the Book Library web API.

This module builds the application:
- Structured logging
- Host configuration via ``web_api_config.register``
- Controller routes compiled from the route table
- Request tracing, correlation ids and Prometheus metrics
- Optional OpenTelemetry instrumentation
- CORS and compression
- Exception handlers rendering through the JSON formatter
- Graceful startup and shutdown
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from booklibrary.shared.logging import configure_logging
from booklibrary.shared.metrics import get_metrics_handler, setup_metrics
from booklibrary.shared.tracing import configure_tracing
from booklibrary.web.config import SETTINGS_PROPERTY, Settings, get_settings
from booklibrary.web.controllers.health import HealthController
from booklibrary.web.hosting import (
    ContainerDependencyResolver,
    DependencyResolver,
    HostConfiguration,
    ServiceRegistry,
)
from booklibrary.web.hosting.dispatch import map_controller_routes
from booklibrary.web.middleware import TraceMiddleware
from booklibrary.web.web_api_config import register

logger = structlog.get_logger(__name__)


def build_default_resolver(settings: Settings) -> DependencyResolver:
    """
    Dependency resolver used when the caller does not supply one.

    Registers the settings and the controllers shipped with the host.
    """
    registry = ServiceRegistry()
    registry.add_instance(Settings, settings)
    registry.add_scoped(HealthController, lambda scope: HealthController(scope.get_service(Settings)))
    return ContainerDependencyResolver(registry)


def create_app(
    settings: Optional[Settings] = None,
    resolver: Optional[DependencyResolver] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
        resolver: Dependency resolver for controllers (defaults to
            ``build_default_resolver``)

    Returns:
        Configured FastAPI application; its ``HostConfiguration`` is
        available as ``app.state.host_configuration``
    """
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.log_format == "json",
        service_name=settings.app_name,
        environment=settings.environment,
    )

    config = HostConfiguration(controller_packages=settings.controller_packages)
    config.properties[SETTINGS_PROPERTY] = settings
    register(config, resolver or build_default_resolver(settings))

    trace_writer = config.services.get_trace_writer()
    trace_writer.minimum_level = settings.minimum_trace_level
    trace_writer.history_size = settings.trace_history_size

    tracer_provider = None
    if settings.tracing_enabled:
        logger.info("initializing_tracing", exporter=settings.tracing_exporter)
        tracer_provider = configure_tracing(
            service_name=settings.app_name,
            service_version=settings.app_version,
            exporter=settings.tracing_exporter,
            otlp_endpoint=settings.tracing_otlp_endpoint,
            sampling_rate=settings.tracing_sample_rate,
        )

    metrics = setup_metrics() if settings.metrics_enabled else None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "application_starting",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment,
        )
        try:
            yield
        finally:
            logger.info("application_shutting_down")
            config.dependency_resolver.close()
            if tracer_provider is not None:
                tracer_provider.shutdown()
            logger.info("application_shutdown_complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Web API host for the Book Library.",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.host_configuration = config
    app.state.settings = settings
    app.state.metrics = metrics

    # ========================================================================
    # Middleware
    # ========================================================================

    if settings.cors_enabled:
        logger.info("configuring_cors", origins=settings.cors_origins)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=settings.cors_allow_methods,
            allow_headers=settings.cors_allow_headers,
        )

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(TraceMiddleware, configuration=config, metrics=metrics)

    # ========================================================================
    # Exception Handlers
    # ========================================================================

    formatter = config.formatters.json_formatter

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        logger.warning("validation_error", path=request.url.path, errors=exc.errors())
        return formatter.create_response(
            {"detail": exc.errors()},
            status_code=422,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        logger.warning(
            "http_exception",
            path=request.url.path,
            status_code=exc.status_code,
            detail=exc.detail,
        )
        return formatter.create_response(
            {"detail": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error("unexpected_exception", path=request.url.path, error=str(exc), exc_info=True)
        detail = str(exc) if settings.is_development else "Internal server error"
        return formatter.create_response(
            {"detail": detail},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    # ========================================================================
    # Routes
    # ========================================================================

    map_controller_routes(app, config, metrics)

    if metrics is not None:
        metrics_handler = get_metrics_handler(metrics)

        @app.get(settings.metrics_endpoint, tags=["Monitoring"], include_in_schema=False)
        async def prometheus_metrics() -> Response:
            """Prometheus metrics endpoint."""
            return Response(content=metrics_handler(), media_type=CONTENT_TYPE_LATEST)

    if tracer_provider is not None:
        FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)

    return app


# Created at import time so uvicorn can discover it
app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    logger.info("starting_uvicorn_server", host=settings.host, port=settings.port, reload=settings.debug)

    uvicorn.run(
        "booklibrary.web.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
