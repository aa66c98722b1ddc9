"""Shared infrastructure: structured logging, tracing and metrics."""
