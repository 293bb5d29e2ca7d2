"""
Repositories over the persistence layer.
"""
from .users import UserRepository, normalize_email
from .tokens import RefreshTokenLedger, DeviceInfo

__all__ = ["UserRepository", "normalize_email", "RefreshTokenLedger", "DeviceInfo"]
