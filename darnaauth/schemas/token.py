"""
Token-related Pydantic models.
"""
from datetime import datetime
from typing import Optional

from .base import CamelModel


class RefreshTokenRequest(CamelModel):
    refresh_token: Optional[str] = None


class LogoutRequest(CamelModel):
    """Logout payload; the refresh token is optional."""
    refresh_token: Optional[str] = None


class RefreshTokenInfo(CamelModel):
    """An active session as shown to its owner. The token itself is masked."""
    id: int
    token_preview: str
    created_at: datetime
    expires_at: datetime
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


class TokenClaims(CamelModel):
    """Claims of a validated access token."""
    user_id: int
    email: str
    role: str
    token_type: str
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
