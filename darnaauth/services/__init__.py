"""
Business services. Each service works on one request-scoped session.
"""
from .base import BaseService, service_operation
from .two_factor import TwoFactorService
from .auth import AuthService, sanitize_user

__all__ = ["BaseService", "service_operation", "TwoFactorService", "AuthService", "sanitize_user"]
