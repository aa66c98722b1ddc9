"""Response models for the web host."""

from .health import HealthResponse, HealthStatus, ReadinessResponse

__all__ = ["HealthResponse", "HealthStatus", "ReadinessResponse"]
