"""Middleware for the web host."""

from .tracing import CORRELATION_HEADER, TraceMiddleware

__all__ = ["CORRELATION_HEADER", "TraceMiddleware"]
