# services/auth.py
"""
Authentication service: registration, login, refresh-token rotation,
logout and revocation.

Every public operation returns a result value. Domain failures (bad
password, expired token, ...) are typed results; only bugs and
infrastructure failures are logged as errors and reported as
INTERNAL_ERROR.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.errors import AuthErrorType
from ..core.security import (
    PasswordHasher,
    TokenIdentity,
    TokenIssuer,
    TokenPayload,
    TokenType,
    validate_password_strength,
)
from ..db.exceptions import ConflictError
from ..models import User, UserRole
from ..repositories.tokens import DeviceInfo, RefreshTokenLedger
from ..repositories.users import UserRepository, normalize_email
from ..schemas.responses import (
    AuthResult,
    RevokeResult,
    SessionListResult,
    TokenValidationResult,
    UserResult,
)
from ..schemas.token import RefreshTokenInfo, TokenClaims
from ..schemas.user import LoginRequest, RegisterRequest, UserPublic
from ..utils.datetime import utcnow
from .base import BaseService, service_operation
from .two_factor import TwoFactorService

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50


def is_valid_email(email: str) -> bool:
    """Syntax-only email check (no DNS lookups).

    Special-use domains such as ``.local`` and ``localhost`` are rejected, so an
    address accepted here is accepted by every entry point.
    """
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def sanitize_user(user: User) -> UserPublic:
    """Public view of a user: no password hash, no 2FA secret, no recovery codes."""
    return UserPublic.model_validate(user)


def _mask_token(token: str) -> str:
    return f"{token[:8]}...{token[-6:]}"


class AuthService(BaseService):
    """Orchestrates the credential store, token issuer, ledger and 2FA engine."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
    ) -> None:
        super().__init__(session)
        self.settings = settings
        self.hasher = hasher
        self.issuer = issuer
        self.users = UserRepository(session)
        self.ledger = RefreshTokenLedger(session, settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self.two_factor = TwoFactorService(session, settings)

    # === Helpers ===
    async def _issue_session(self, user: User, device_info: Optional[DeviceInfo]) -> Dict[str, Any]:
        """Mint an access/refresh pair and record the refresh token. Caller commits."""
        identity = TokenIdentity(user_id=user.id, email=user.email, role=user.role)
        access_token = self.issuer.mint_access_token(identity)
        refresh_token = self.issuer.mint_refresh_token(identity)
        await self.ledger.store(user.id, refresh_token, device_info)
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": self.settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        }

    # === Registration ===
    @service_operation(AuthResult)
    async def register(
        self,
        data: Union[RegisterRequest, Dict[str, Any]],
        device_info: Optional[DeviceInfo] = None,
    ) -> AuthResult:
        """Create an account and open a first session."""
        if isinstance(data, dict):
            data = RegisterRequest.model_validate(data)

        if not data.email or not data.password or not data.name:
            return AuthResult.fail(
                AuthErrorType.REQUIRED_FIELDS_MISSING,
                "Email, password and name are required",
            )

        email = normalize_email(data.email)
        if not is_valid_email(email):
            return AuthResult.fail(AuthErrorType.EMAIL_INVALID)

        weakness = validate_password_strength(data.password)
        if weakness:
            return AuthResult.fail(AuthErrorType.PASSWORD_WEAK, weakness)

        name = data.name.strip()
        if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
            return AuthResult.fail(AuthErrorType.NAME_INVALID)

        role = data.role or UserRole.VISITOR.value
        if role not in {r.value for r in UserRole}:
            return AuthResult.fail(AuthErrorType.ROLE_INVALID)

        if await self.users.get_by_email(email):
            logger.warning(f"Registration attempt with an existing email: {email}")
            return AuthResult.fail(AuthErrorType.EMAIL_ALREADY_REGISTERED)

        hashed_password = await self.hasher.hash_async(data.password)
        try:
            user = await self.users.create(
                email=email,
                hashed_password=hashed_password,
                name=name,
                phone=data.phone,
                role=role,
            )
        except ConflictError:
            return AuthResult.fail(AuthErrorType.EMAIL_ALREADY_REGISTERED)

        tokens = await self._issue_session(user, device_info)
        await self.session.commit()

        logger.info(f"User registered: {email} (id={user.id})")
        return AuthResult.ok(
            "Registration successful",
            user=sanitize_user(user),
            success_status=201,
            **tokens,
        )

    # === Login ===
    @service_operation(AuthResult)
    async def login(
        self,
        credentials: Union[LoginRequest, Dict[str, Any]],
        device_info: Optional[DeviceInfo] = None,
    ) -> AuthResult:
        """
        Authenticate with email and password, then the TOTP code when 2FA is on.

        Unknown email and wrong password produce the same INVALID_CREDENTIALS
        result so the response does not reveal which accounts exist.
        """
        if isinstance(credentials, dict):
            credentials = LoginRequest.model_validate(credentials)

        if not credentials.email or not credentials.password:
            return AuthResult.fail(
                AuthErrorType.REQUIRED_FIELDS_MISSING,
                "Email and password are required",
            )

        email = normalize_email(credentials.email)
        if not is_valid_email(email):
            return AuthResult.fail(AuthErrorType.EMAIL_INVALID)

        user = await self.users.get_by_email(email)
        if not user:
            logger.warning(f"Login attempt for unknown email: {email}")
            return AuthResult.fail(AuthErrorType.INVALID_CREDENTIALS)

        if not await self.hasher.verify_async(credentials.password, user.hashed_password):
            logger.warning(f"Login attempt with incorrect password: {email}")
            return AuthResult.fail(AuthErrorType.INVALID_CREDENTIALS)

        if not user.is_active:
            logger.warning(f"Login attempt on inactive account: {email}")
            return AuthResult.fail(AuthErrorType.ACCOUNT_INACTIVE)

        if user.two_factor_enabled:
            if not credentials.two_factor_token:
                return AuthResult(
                    success=False,
                    message="Two-factor authentication code required",
                    requires_2fa=True,
                )
            check = await self.two_factor.verify(user.id, credentials.two_factor_token)
            if not check.success:
                logger.warning(f"Login with invalid 2FA code: {email}")
                return AuthResult.fail(check.error_type or AuthErrorType.TWO_FACTOR_INVALID)

        await self.users.touch_last_login(user.id)
        tokens = await self._issue_session(user, device_info)
        await self.session.commit()

        logger.info(f"Successful login for user: {email}")
        return AuthResult.ok("Login successful", user=sanitize_user(user), **tokens)

    @service_operation(AuthResult)
    async def login_with_recovery_code(
        self,
        email: Optional[str],
        recovery_code: Optional[str],
        device_info: Optional[DeviceInfo] = None,
    ) -> AuthResult:
        """Open a session using a single-use recovery code instead of a TOTP code."""
        if not email or not recovery_code:
            return AuthResult.fail(
                AuthErrorType.REQUIRED_FIELDS_MISSING,
                "Email and recovery code are required",
            )

        user = await self.users.get_by_email(email)
        if not user:
            return AuthResult.fail(AuthErrorType.USER_NOT_FOUND)
        if not user.is_active:
            return AuthResult.fail(AuthErrorType.ACCOUNT_INACTIVE)

        check = await self.two_factor.verify_recovery_code(user.id, recovery_code)
        if not check.success:
            return AuthResult.fail(check.error_type or AuthErrorType.RECOVERY_CODE_INVALID)

        await self.users.touch_last_login(user.id)
        tokens = await self._issue_session(user, device_info)
        await self.session.commit()

        logger.info(f"Recovery code login for user: {user.email}")
        return AuthResult.ok("Recovery code accepted", user=sanitize_user(user), **tokens)

    # === Refresh rotation ===
    @service_operation(AuthResult)
    async def refresh(
        self,
        refresh_token: Optional[str],
        device_info: Optional[DeviceInfo] = None,
    ) -> AuthResult:
        """
        Exchange a refresh token for a new access/refresh pair.

        The presented token is single use: it is claimed with an atomic
        conditional revoke before the new pair is issued, so of two
        concurrent refreshes with the same token only one succeeds.
        """
        if not refresh_token:
            return AuthResult.fail(AuthErrorType.TOKEN_MISSING)

        # Expiry is judged against the ledger below so an expired token
        # reports TOKEN_EXPIRED and gets revoked rather than just "invalid".
        payload = self.issuer.verify(refresh_token, TokenType.REFRESH, allow_expired=True)
        if payload is None:
            return AuthResult.fail(AuthErrorType.TOKEN_INVALID)

        record = await self.ledger.find(payload.user_id, refresh_token)
        if record is None:
            if await self.ledger.find_any(payload.user_id, refresh_token) is not None:
                logger.warning(f"Reuse of a revoked refresh token for user {payload.user_id}")
                return AuthResult.fail(AuthErrorType.TOKEN_REVOKED)
            return AuthResult.fail(AuthErrorType.TOKEN_INVALID)

        now = utcnow()
        if record.is_expired(now) or (payload.expires_at is not None and payload.expires_at <= now):
            await self.ledger.revoke(payload.user_id, refresh_token)
            await self.session.commit()
            return AuthResult.fail(AuthErrorType.TOKEN_EXPIRED)

        user = await self.users.get_by_id(payload.user_id)
        if not user:
            return AuthResult.fail(AuthErrorType.USER_NOT_FOUND)
        if not user.is_active:
            return AuthResult.fail(AuthErrorType.ACCOUNT_INACTIVE)

        if not await self.ledger.revoke(user.id, refresh_token):
            await self.session.rollback()
            return AuthResult.fail(AuthErrorType.TOKEN_REVOKED)

        tokens = await self._issue_session(user, device_info)
        await self.session.commit()

        logger.info(f"Refresh token rotated for user {user.id}")
        return AuthResult.ok("Token refreshed", **tokens)

    # === Logout / revocation ===
    @service_operation(RevokeResult)
    async def logout(self, user_id: int, refresh_token: Optional[str] = None) -> RevokeResult:
        """
        End the caller's session.

        Revokes the presented refresh token when one is given. Access tokens
        are not blacklisted; they lapse at their (short) expiry.
        """
        revoked = 0
        if refresh_token and await self.ledger.revoke(user_id, refresh_token):
            revoked = 1
        await self.session.commit()
        logger.info(f"User {user_id} logged out")
        return RevokeResult.ok("Logout successful", revoked_count=revoked)

    @service_operation(RevokeResult)
    async def revoke_all_refresh_tokens(self, user_id: int) -> RevokeResult:
        """Log out everywhere."""
        count = await self.ledger.revoke_all(user_id)
        await self.session.commit()
        logger.info(f"Revoked {count} refresh tokens for user {user_id}")
        return RevokeResult.ok("All refresh tokens revoked", revoked_count=count)

    @service_operation(SessionListResult)
    async def list_refresh_tokens(self, user_id: int) -> SessionListResult:
        """Active sessions of a user, with the token values masked."""
        records = await self.ledger.list_active(user_id)
        infos: List[RefreshTokenInfo] = [
            RefreshTokenInfo(
                id=record.id,
                token_preview=_mask_token(record.token),
                created_at=record.created_at,
                expires_at=record.expires_at,
                user_agent=record.user_agent,
                ip_address=record.ip_address,
            )
            for record in records
        ]
        return SessionListResult.ok("Active refresh tokens", refresh_tokens=infos, count=len(infos))

    async def cleanup_refresh_tokens(self, user_id: Optional[int] = None) -> int:
        """Purge expired or revoked ledger entries."""
        count = await self.ledger.cleanup(user_id)
        await self.session.commit()
        logger.info(f"Purged {count} refresh tokens")
        return count

    # === Lookups ===
    def validate_access_token(self, token: Optional[str]) -> Optional[TokenPayload]:
        return self.issuer.verify(token, TokenType.ACCESS)

    def describe_access_token(self, token: Optional[str]) -> TokenValidationResult:
        payload = self.validate_access_token(token)
        if payload is None:
            return TokenValidationResult.fail(AuthErrorType.TOKEN_INVALID)
        return TokenValidationResult.ok(
            "Token is valid",
            claims=TokenClaims(
                user_id=payload.user_id,
                email=payload.email,
                role=payload.role,
                token_type=payload.token_type.value,
                issued_at=payload.issued_at,
                expires_at=payload.expires_at,
            ),
        )

    async def get_user_by_id(self, user_id: int) -> Optional[UserPublic]:
        user = await self.users.get_by_id(user_id)
        return sanitize_user(user) if user else None

    async def get_user_by_email(self, email: str) -> Optional[UserPublic]:
        user = await self.users.get_by_email(email)
        return sanitize_user(user) if user else None

    @service_operation(UserResult)
    async def get_profile(self, user_id: int) -> UserResult:
        user = await self.get_user_by_id(user_id)
        if user is None:
            return UserResult.fail(AuthErrorType.USER_NOT_FOUND)
        return UserResult.ok("Profile retrieved", user=user)

    # === Bootstrap ===
    async def ensure_admin(self, email: str, password: str, name: str = "Administrator") -> bool:
        """Create an admin account unless one with this email exists. Returns whether it was created."""
        if not is_valid_email(normalize_email(email)):
            raise ValueError(f"Admin email rejected: {email!r} is not a valid email address")
        if await self.users.get_by_email(email):
            return False
        weakness = validate_password_strength(password)
        if weakness:
            raise ValueError(f"Admin password rejected: {weakness}")
        await self.users.create(
            email=email,
            hashed_password=await self.hasher.hash_async(password),
            name=name,
            role=UserRole.ADMIN.value,
            is_verified=True,
        )
        await self.session.commit()
        logger.info(f"Admin account created: {normalize_email(email)}")
        return True
