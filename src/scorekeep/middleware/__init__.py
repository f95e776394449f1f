# src/scorekeep/middleware/__init__.py

"""Middleware components for the Scorekeep API."""

from .logging import RequestLoggingMiddleware
from .public_api import PublicApiMiddleware

__all__ = ["PublicApiMiddleware", "RequestLoggingMiddleware"]
