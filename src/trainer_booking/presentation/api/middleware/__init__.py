"""Middleware module for the trainer booking API."""

from .logging import create_logging_middleware, RequestResponseLoggingMiddleware

__all__ = [
    "create_logging_middleware",
    "RequestResponseLoggingMiddleware"
]
