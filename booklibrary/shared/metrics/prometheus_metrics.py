"""Prometheus metrics definitions and helpers.

Provides the HTTP request metrics recorded by the web host.
"""

from typing import Callable

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    CollectorRegistry,
)


class HttpMetrics:
    """Request pipeline metrics."""

    def __init__(self, registry: CollectorRegistry) -> None:
        """Initialize HTTP metrics.

        Args:
            registry: Prometheus registry to use
        """
        self.registry = registry

        self.requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "route", "status"],
            registry=registry,
        )

        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "route"],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry,
        )

        self.requests_in_progress = Gauge(
            "http_requests_in_progress",
            "HTTP requests currently in progress",
            ["method"],
            registry=registry,
        )

        # Actions compiled into the route table, by routing kind
        self.routes_registered = Gauge(
            "host_routes_registered",
            "Number of controller action routes registered at startup",
            ["kind"],
            registry=registry,
        )


def setup_metrics() -> HttpMetrics:
    """Create HTTP metrics on a fresh registry.

    A registry per application keeps several hosts in one process (tests)
    from colliding on metric names.

    Returns:
        HttpMetrics bound to its own registry
    """
    return HttpMetrics(CollectorRegistry())


def get_metrics_handler(metrics: HttpMetrics) -> Callable[[], bytes]:
    """Get metrics handler for HTTP endpoint.

    Returns:
        Function that generates Prometheus metrics output
    """

    def metrics_handler() -> bytes:
        return generate_latest(metrics.registry)

    return metrics_handler
