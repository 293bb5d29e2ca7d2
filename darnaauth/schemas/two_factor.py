"""
Two-factor authentication request models.
"""
from typing import Optional

from .base import CamelModel


class TwoFactorCode(CamelModel):
    """A TOTP code submitted by the user."""
    token: Optional[str] = None


class RecoveryRequest(CamelModel):
    email: Optional[str] = None
    recovery_code: Optional[str] = None
