# middleware/__init__.py
"""
HTTP middlewares for the Darna authentication service.
"""
from .base import DarnaMiddleware
from .logging import RequestLoggingMiddleware

__all__ = ["DarnaMiddleware", "RequestLoggingMiddleware"]
