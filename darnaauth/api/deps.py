# api/deps.py
"""
Request-scoped dependencies.

Shared objects (settings, database, hasher, token issuer) are built once by
``create_app`` and read from ``app.state``; a session and the services on
top of it are created per request. The bearer-token dependencies turn an
``Authorization`` header into an ``AuthContext`` or abort with ``AuthError``.
"""
import logging
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.errors import AuthError, AuthErrorType
from ..core.security import PasswordHasher, TokenIssuer, TokenType
from ..db import Database
from ..models import UserRole
from ..repositories.tokens import DeviceInfo
from ..repositories.users import UserRepository
from ..services import AuthService, TwoFactorService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# === Application state ===
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_hasher(request: Request) -> PasswordHasher:
    return request.app.state.hasher


def get_issuer(request: Request) -> TokenIssuer:
    return request.app.state.issuer


async def get_session(database: Database = Depends(get_database)) -> AsyncGenerator[AsyncSession, None]:
    """One session per request; services commit their own work."""
    async with database.session() as session:
        yield session


def get_auth_service(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    hasher: PasswordHasher = Depends(get_hasher),
    issuer: TokenIssuer = Depends(get_issuer),
) -> AuthService:
    return AuthService(session, settings, hasher, issuer)


def get_two_factor_service(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> TwoFactorService:
    return TwoFactorService(session, settings)


def get_device_info(request: Request) -> DeviceInfo:
    """User agent and client address of the caller."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        ip_address = request.client.host if request.client else None
    return DeviceInfo(user_agent=request.headers.get("user-agent"), ip_address=ip_address)


# === Authentication ===
@dataclass(frozen=True)
class AuthContext:
    """The authenticated caller of the current request."""
    user_id: int
    email: str
    role: str
    token_type: str = TokenType.ACCESS.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials


async def get_optional_auth_context(
    token: Optional[str] = Depends(get_bearer_token),
    issuer: TokenIssuer = Depends(get_issuer),
) -> Optional[AuthContext]:
    """Like ``get_auth_context`` but anonymous callers get None."""
    payload = issuer.verify(token, TokenType.ACCESS)
    if payload is None:
        return None
    return AuthContext(
        user_id=payload.user_id,
        email=payload.email,
        role=payload.role,
        token_type=payload.token_type.value,
    )


async def get_auth_context(
    request: Request,
    token: Optional[str] = Depends(get_bearer_token),
    issuer: TokenIssuer = Depends(get_issuer),
) -> AuthContext:
    """Require a valid access token."""
    if not token:
        raise AuthError(AuthErrorType.TOKEN_MISSING)

    payload = issuer.verify(token, TokenType.ACCESS)
    if payload is None:
        logger.info(f"Rejected access token on {request.method} {request.url.path}")
        raise AuthError(AuthErrorType.TOKEN_INVALID)

    context = AuthContext(
        user_id=payload.user_id,
        email=payload.email,
        role=payload.role,
        token_type=payload.token_type.value,
    )
    request.state.auth = context
    return context


# === Authorization gates ===
def require_roles(*roles: str) -> Callable:
    """Dependency factory allowing only the given roles."""
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    async def role_checker(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if context.role not in allowed:
            raise AuthError(AuthErrorType.INSUFFICIENT_PERMISSIONS)
        return context

    return role_checker


def require_subscription(*tiers: str) -> Callable:
    """Dependency factory allowing only users on the given subscription tiers. Admins pass."""
    allowed = {getattr(t, "value", t) for t in tiers}

    async def subscription_checker(
        context: AuthContext = Depends(get_auth_context),
        session: AsyncSession = Depends(get_session),
    ) -> AuthContext:
        if context.is_admin:
            return context
        user = await UserRepository(session).get_by_id(context.user_id)
        if user is None:
            raise AuthError(AuthErrorType.USER_NOT_FOUND)
        if user.subscription_type not in allowed:
            raise AuthError(
                AuthErrorType.INSUFFICIENT_PERMISSIONS,
                "Your subscription does not include this feature",
            )
        return context

    return subscription_checker


def ensure_owner(context: AuthContext, owner_id: int) -> None:
    """Raise unless the caller owns the resource. Admins may act on anything."""
    if context.is_admin or context.user_id == owner_id:
        return
    raise AuthError(AuthErrorType.INSUFFICIENT_PERMISSIONS)
