"""Web API host for the Book Library.

This package configures the request pipeline (routing, dependency
resolution, JSON formatting, tracing) and serves the discovered
controllers through FastAPI.
"""
