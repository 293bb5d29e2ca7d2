"""
Result envelopes returned by the services and rendered as ``{success, message, ...}``.
"""
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.errors import ERROR_MESSAGES, ERROR_STATUS_CODES, AuthErrorType, error_detail
from .base import CamelModel
from .token import RefreshTokenInfo, TokenClaims
from .user import UserPublic


class ServiceResult(CamelModel):
    """Outcome of a service operation. Domain failures are values, not exceptions."""
    success: bool
    message: str
    error: Optional[Dict[str, Any]] = None
    error_type: Optional[AuthErrorType] = Field(default=None, exclude=True)
    success_status: int = Field(default=200, exclude=True)

    @classmethod
    def ok(cls, message: str, **data: Any):
        return cls(success=True, message=message, **data)

    @classmethod
    def fail(cls, error_type: AuthErrorType, message: Optional[str] = None, **data: Any):
        message = message or ERROR_MESSAGES[error_type]
        return cls(
            success=False,
            message=message,
            error=error_detail(error_type, message),
            error_type=error_type,
            **data,
        )

    @property
    def status_code(self) -> int:
        if self.error_type is not None:
            return ERROR_STATUS_CODES[self.error_type]
        return self.success_status

    def to_response_body(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class AuthResult(ServiceResult):
    """Result of register / login / refresh / recovery login."""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    user: Optional[UserPublic] = None
    requires_2fa: Optional[bool] = Field(default=None, alias="requires2FA")


class UserResult(ServiceResult):
    user: Optional[UserPublic] = None


class TokenValidationResult(ServiceResult):
    claims: Optional[TokenClaims] = None


class SessionListResult(ServiceResult):
    refresh_tokens: List[RefreshTokenInfo] = []
    count: int = 0


class RevokeResult(ServiceResult):
    revoked_count: int = 0


class TwoFactorResult(ServiceResult):
    """Result of a two-factor operation; only the relevant fields are set."""
    secret: Optional[str] = None
    qr_code: Optional[str] = None
    otpauth_url: Optional[str] = None
    manual_entry_key: Optional[str] = None
    recovery_codes: Optional[List[str]] = None
