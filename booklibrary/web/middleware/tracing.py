"""
Request tracing middleware.

Writes begin/end trace records for every request, binds the correlation id
into the structlog context for the duration of the request and records
Prometheus request metrics.
"""

import time
import uuid
from typing import Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from booklibrary.shared.logging import bind_context, unbind_context
from booklibrary.shared.metrics import HttpMetrics
from booklibrary.web.hosting.configuration import HostConfiguration
from booklibrary.web.hosting.tracing import CATEGORY_REQUEST, TraceLevel

logger = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class TraceMiddleware(BaseHTTPMiddleware):
    """Middleware for request tracing, correlation ids and metrics."""

    def __init__(self, app, configuration: HostConfiguration, metrics: Optional[HttpMetrics] = None):
        super().__init__(app)
        self.configuration = configuration
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        """Trace the request and pass it on."""
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        method = request.method
        path = request.url.path
        writer = self.configuration.services.get_trace_writer()

        bind_context(correlation_id=correlation_id)
        if self.metrics is not None:
            self.metrics.requests_in_progress.labels(method=method).inc()

        start_time = time.perf_counter()
        if writer is not None:
            writer.trace(
                CATEGORY_REQUEST,
                TraceLevel.DEBUG,
                operation="begin",
                message=f"{method} {path}",
            )

        try:
            response = await call_next(request)
        except Exception as exc:
            duration = time.perf_counter() - start_time
            if writer is not None:
                writer.trace(
                    CATEGORY_REQUEST,
                    TraceLevel.ERROR,
                    operation="end",
                    message=f"{method} {path}",
                    status_code=500,
                    elapsed=duration,
                    exception=exc,
                )
            self._observe(request, method, 500, duration)
            raise
        finally:
            if self.metrics is not None:
                self.metrics.requests_in_progress.labels(method=method).dec()
            unbind_context("correlation_id")

        duration = time.perf_counter() - start_time
        if writer is not None:
            writer.trace(
                CATEGORY_REQUEST,
                TraceLevel.ERROR if response.status_code >= 500 else TraceLevel.INFO,
                operation="end",
                message=f"{method} {path}",
                status_code=response.status_code,
                elapsed=duration,
                request_id=correlation_id,
            )
        self._observe(request, method, response.status_code, duration)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    def _observe(self, request: Request, method: str, status_code: int, duration: float) -> None:
        if self.metrics is None:
            return
        endpoint = request.scope.get("endpoint")
        route = getattr(endpoint, "__route_path__", None) or getattr(request.scope.get("route"), "path", "unmatched")
        self.metrics.requests_total.labels(method=method, route=route, status=status_code).inc()
        self.metrics.request_duration.labels(method=method, route=route).observe(duration)
