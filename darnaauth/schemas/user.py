"""
User-related Pydantic models for request/response validation.
"""
from datetime import datetime
from typing import Optional

from .base import CamelModel


class RegisterRequest(CamelModel):
    """Registration payload. Fields are validated by the auth service."""
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(CamelModel):
    """Login payload."""
    email: Optional[str] = None
    password: Optional[str] = None
    two_factor_token: Optional[str] = None


class UserPublic(CamelModel):
    """User model returned to clients (never includes the password hash or 2FA secret)."""
    id: int
    email: str
    name: str
    phone: Optional[str] = None
    role: str
    subscription_type: str
    is_active: bool
    is_verified: bool
    is_kyc_verified: bool
    two_factor_enabled: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
