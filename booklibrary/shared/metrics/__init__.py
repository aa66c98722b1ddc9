"""Metrics module using Prometheus."""

from .prometheus_metrics import HttpMetrics, get_metrics_handler, setup_metrics

__all__ = [
    "HttpMetrics",
    "setup_metrics",
    "get_metrics_handler",
]
