# core/errors.py
"""
Authentication error taxonomy.

Every failure the auth core can report has a stable type, a user-facing
message and an HTTP status code. Services return these inside an
``AuthResult``; HTTP dependencies raise them as ``AuthError``.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class AuthErrorType(str, Enum):
    """Authentication error types."""
    # Validation
    REQUIRED_FIELDS_MISSING = "REQUIRED_FIELDS_MISSING"
    EMAIL_INVALID = "EMAIL_INVALID"
    PASSWORD_WEAK = "PASSWORD_WEAK"
    NAME_INVALID = "NAME_INVALID"
    ROLE_INVALID = "ROLE_INVALID"
    EMAIL_ALREADY_REGISTERED = "EMAIL_ALREADY_REGISTERED"

    # Credentials / account state
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    INCORRECT_PASSWORD = "INCORRECT_PASSWORD"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Tokens
    TOKEN_MISSING = "TOKEN_MISSING"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_REVOKED = "TOKEN_REVOKED"

    # Two-factor
    TWO_FACTOR_REQUIRED = "TWO_FACTOR_REQUIRED"
    TWO_FACTOR_INVALID = "TWO_FACTOR_INVALID"
    TWO_FACTOR_NOT_ENABLED = "TWO_FACTOR_NOT_ENABLED"
    TWO_FACTOR_NOT_CONFIGURED = "TWO_FACTOR_NOT_CONFIGURED"
    TWO_FACTOR_ALREADY_ENABLED = "TWO_FACTOR_ALREADY_ENABLED"
    RECOVERY_CODE_INVALID = "RECOVERY_CODE_INVALID"

    # Server
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_MESSAGES: Dict[AuthErrorType, str] = {
    AuthErrorType.REQUIRED_FIELDS_MISSING: "Required fields are missing",
    AuthErrorType.EMAIL_INVALID: "Invalid email format",
    AuthErrorType.PASSWORD_WEAK: "Password does not meet the security requirements",
    AuthErrorType.NAME_INVALID: "Name must be between 2 and 50 characters",
    AuthErrorType.ROLE_INVALID: "Invalid role",
    AuthErrorType.EMAIL_ALREADY_REGISTERED: "Email already registered",

    AuthErrorType.INVALID_CREDENTIALS: "Incorrect email or password",
    AuthErrorType.ACCOUNT_NOT_FOUND: "No account found for this email",
    AuthErrorType.INCORRECT_PASSWORD: "Incorrect password",
    AuthErrorType.ACCOUNT_INACTIVE: "Your account has been deactivated. Contact support.",
    AuthErrorType.ACCOUNT_LOCKED: "Your account has been locked. Contact support.",
    AuthErrorType.USER_NOT_FOUND: "User not found",
    AuthErrorType.INSUFFICIENT_PERMISSIONS: "Access denied",

    AuthErrorType.TOKEN_MISSING: "Authentication token is missing",
    AuthErrorType.TOKEN_INVALID: "Authentication token is invalid",
    AuthErrorType.TOKEN_EXPIRED: "Authentication token has expired",
    AuthErrorType.TOKEN_REVOKED: "Authentication token has been revoked",

    AuthErrorType.TWO_FACTOR_REQUIRED: "Two-factor authentication code required",
    AuthErrorType.TWO_FACTOR_INVALID: "Invalid two-factor authentication code",
    AuthErrorType.TWO_FACTOR_NOT_ENABLED: "Two-factor authentication is not enabled",
    AuthErrorType.TWO_FACTOR_NOT_CONFIGURED: "Two-factor authentication is not set up. Run setup first",
    AuthErrorType.TWO_FACTOR_ALREADY_ENABLED: "Two-factor authentication is already enabled",
    AuthErrorType.RECOVERY_CODE_INVALID: "Invalid recovery code",

    AuthErrorType.INTERNAL_ERROR: "An internal error occurred",
}

ERROR_STATUS_CODES: Dict[AuthErrorType, int] = {
    AuthErrorType.REQUIRED_FIELDS_MISSING: 400,
    AuthErrorType.EMAIL_INVALID: 400,
    AuthErrorType.PASSWORD_WEAK: 400,
    AuthErrorType.NAME_INVALID: 400,
    AuthErrorType.ROLE_INVALID: 400,
    AuthErrorType.EMAIL_ALREADY_REGISTERED: 400,

    AuthErrorType.INVALID_CREDENTIALS: 401,
    AuthErrorType.ACCOUNT_NOT_FOUND: 404,
    AuthErrorType.INCORRECT_PASSWORD: 401,
    AuthErrorType.ACCOUNT_INACTIVE: 403,
    AuthErrorType.ACCOUNT_LOCKED: 423,
    AuthErrorType.USER_NOT_FOUND: 404,
    AuthErrorType.INSUFFICIENT_PERMISSIONS: 403,

    AuthErrorType.TOKEN_MISSING: 401,
    AuthErrorType.TOKEN_INVALID: 401,
    AuthErrorType.TOKEN_EXPIRED: 401,
    AuthErrorType.TOKEN_REVOKED: 401,

    AuthErrorType.TWO_FACTOR_REQUIRED: 401,
    AuthErrorType.TWO_FACTOR_INVALID: 401,
    AuthErrorType.TWO_FACTOR_NOT_ENABLED: 400,
    AuthErrorType.TWO_FACTOR_NOT_CONFIGURED: 400,
    AuthErrorType.TWO_FACTOR_ALREADY_ENABLED: 400,
    AuthErrorType.RECOVERY_CODE_INVALID: 400,

    AuthErrorType.INTERNAL_ERROR: 500,
}


def error_detail(error_type: AuthErrorType, message: Optional[str] = None) -> Dict[str, Any]:
    """Build the ``error`` object carried by failed responses."""
    return {
        "type": error_type.value,
        "message": message or ERROR_MESSAGES[error_type],
        "statusCode": ERROR_STATUS_CODES[error_type],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class AuthError(Exception):
    """Raised by HTTP-facing code to abort a request with a typed auth failure."""

    def __init__(self, error_type: AuthErrorType, message: Optional[str] = None) -> None:
        self.error_type = error_type
        self.message = message or ERROR_MESSAGES[error_type]
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_CODES[self.error_type]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "error": error_detail(self.error_type, self.message),
        }


__all__ = ["AuthErrorType", "AuthError", "ERROR_MESSAGES", "ERROR_STATUS_CODES", "error_detail"]
