# core/security.py
"""
Password hashing and JWT token issuance.

Access and refresh tokens are signed with distinct secrets and carry a
``tokenType`` claim, so a token minted for one purpose is rejected when
presented as the other even if its signature is valid.
"""
import asyncio
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from ..utils.datetime import from_timestamp

logger = logging.getLogger(__name__)


class TokenType(str, Enum):
    """Token types."""
    ACCESS = "access"
    REFRESH = "refresh"


# === Password hashing ===
class PasswordHasher:
    """Salted bcrypt hashing with a fixed work factor."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Generate a password hash."""
        return self._context.hash(password)

    def verify(self, password: str, hashed_password: str) -> bool:
        """Verify a password against a hash. A malformed hash never matches."""
        if not password or not hashed_password:
            return False
        try:
            return self._context.verify(password, hashed_password)
        except (ValueError, TypeError):
            logger.warning("Password verification against a malformed hash")
            return False

    async def hash_async(self, password: str) -> str:
        """Hash in a worker thread so the event loop keeps serving requests."""
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, password: str, hashed_password: str) -> bool:
        return await asyncio.to_thread(self.verify, password, hashed_password)


PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def validate_password_strength(password: str) -> Optional[str]:
    """Return a message describing why ``password`` is too weak, or None."""
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
    if len(password) > PASSWORD_MAX_LENGTH:
        return f"Password cannot exceed {PASSWORD_MAX_LENGTH} characters"
    if "\x00" in password:
        return "Password cannot contain NUL characters"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"\d", password):
        return "Password must contain at least one digit"
    return None


# === Tokens ===
@dataclass(frozen=True)
class TokenIdentity:
    """The subject a token is minted for."""
    user_id: int
    email: str
    role: str


@dataclass(frozen=True)
class TokenPayload:
    """Decoded and validated token claims."""
    user_id: int
    email: str
    role: str
    token_type: TokenType
    issued_at: Optional[datetime]
    expires_at: Optional[datetime]
    jti: Optional[str] = None

    @property
    def identity(self) -> TokenIdentity:
        return TokenIdentity(user_id=self.user_id, email=self.email, role=self.role)


class TokenIssuer:
    """Creates and validates signed, time-limited access and refresh tokens."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_expire_minutes: int = 15,
        refresh_expire_days: int = 7,
    ) -> None:
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens require distinct secrets")
        self._secrets = {
            TokenType.ACCESS: access_secret,
            TokenType.REFRESH: refresh_secret,
        }
        self.algorithm = algorithm
        self.access_expires = timedelta(minutes=access_expire_minutes)
        self.refresh_expires = timedelta(days=refresh_expire_days)

    @classmethod
    def from_settings(cls, settings) -> "TokenIssuer":
        return cls(
            access_secret=settings.JWT_ACCESS_SECRET,
            refresh_secret=settings.JWT_REFRESH_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            access_expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
            refresh_expire_days=settings.REFRESH_TOKEN_EXPIRE_DAYS,
        )

    def _mint(
        self,
        identity: TokenIdentity,
        token_type: TokenType,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        now = datetime.now(timezone.utc)
        if expires_delta is None:
            expires_delta = self.access_expires if token_type == TokenType.ACCESS else self.refresh_expires
        to_encode: Dict[str, Any] = {
            "userId": str(identity.user_id),
            "email": identity.email,
            "role": identity.role,
            "tokenType": token_type.value,
            "iat": now,
            "exp": now + expires_delta,
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(to_encode, self._secrets[token_type], algorithm=self.algorithm)

    def mint_access_token(self, identity: TokenIdentity, expires_delta: Optional[timedelta] = None) -> str:
        """Create an access token."""
        return self._mint(identity, TokenType.ACCESS, expires_delta)

    def mint_refresh_token(self, identity: TokenIdentity, expires_delta: Optional[timedelta] = None) -> str:
        """Create a refresh token."""
        return self._mint(identity, TokenType.REFRESH, expires_delta)

    def verify(
        self,
        token: Optional[str],
        expected_type: TokenType,
        *,
        allow_expired: bool = False,
    ) -> Optional[TokenPayload]:
        """
        Decode and validate a token.

        Checks signature, expiry (unless ``allow_expired``) and that the
        ``tokenType`` claim matches ``expected_type``. Returns None on any
        failure so callers treat "invalid" the same as "absent".
        """
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secrets[expected_type],
                algorithms=[self.algorithm],
                options={"verify_exp": not allow_expired},
            )
        except JWTError as e:
            logger.debug(f"Token rejected: {e}")
            return None

        if payload.get("tokenType") != expected_type.value:
            return None

        try:
            user_id = int(payload["userId"])
            email = str(payload["email"])
            role = str(payload["role"])
        except (KeyError, TypeError, ValueError):
            return None

        return TokenPayload(
            user_id=user_id,
            email=email,
            role=role,
            token_type=expected_type,
            issued_at=from_timestamp(payload.get("iat")),
            expires_at=from_timestamp(payload.get("exp")),
            jti=payload.get("jti"),
        )


__all__ = [
    "TokenType", "PasswordHasher", "validate_password_strength",
    "TokenIdentity", "TokenPayload", "TokenIssuer",
]
