"""
Pydantic models for requests, responses and service results.
"""
from .user import RegisterRequest, LoginRequest, UserPublic
from .token import RefreshTokenRequest, LogoutRequest, RefreshTokenInfo, TokenClaims
from .two_factor import TwoFactorCode, RecoveryRequest
from .responses import (
    ServiceResult, AuthResult, UserResult, TokenValidationResult,
    SessionListResult, RevokeResult, TwoFactorResult,
)

__all__ = [
    "RegisterRequest", "LoginRequest", "UserPublic",
    "RefreshTokenRequest", "LogoutRequest", "RefreshTokenInfo", "TokenClaims",
    "TwoFactorCode", "RecoveryRequest",
    "ServiceResult", "AuthResult", "UserResult", "TokenValidationResult",
    "SessionListResult", "RevokeResult", "TwoFactorResult",
]
