"""
Core building blocks for the Darna authentication service: configuration,
error taxonomy, password hashing and token issuance.
"""
from .config import Settings, get_settings
from .errors import AuthError, AuthErrorType
from .security import PasswordHasher, TokenIssuer, TokenIdentity, TokenPayload, TokenType

__all__ = [
    'Settings', 'get_settings', 'AuthError', 'AuthErrorType',
    'PasswordHasher', 'TokenIssuer', 'TokenIdentity', 'TokenPayload', 'TokenType',
]
