"""Structured logging module using structlog."""

from .structured_logger import bind_context, configure_logging, get_logger, unbind_context

__all__ = ["bind_context", "configure_logging", "get_logger", "unbind_context"]
