# services/two_factor.py
"""
Two-Factor Authentication (2FA) engine.

Per-user states: disabled -> pending setup (secret stored, not enabled)
-> enabled -> disabled. Recovery codes exist only while enabled.
"""
import base64
import io
import json
import logging
import secrets
import string
from datetime import datetime
from typing import List, Optional, Union

import pyotp
import qrcode
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.errors import AuthErrorType
from ..repositories.users import UserRepository
from ..schemas.responses import TwoFactorResult
from .base import BaseService, service_operation

logger = logging.getLogger(__name__)

RECOVERY_CODE_ALPHABET = string.ascii_uppercase + string.digits
RECOVERY_CODE_LENGTH = 8

ForTime = Optional[Union[int, datetime]]


class TwoFactorService(BaseService):
    """TOTP secrets, code verification and recovery codes."""

    def __init__(self, session: AsyncSession, settings: Settings) -> None:
        super().__init__(session)
        self.settings = settings
        self.users = UserRepository(session)

    # === Primitives ===
    @staticmethod
    def generate_secret() -> str:
        """Generate a new base32 TOTP secret."""
        return pyotp.random_base32(length=32)

    @staticmethod
    def generate_recovery_codes(count: int = 10) -> List[str]:
        """Generate distinct 8-character uppercase alphanumeric recovery codes."""
        codes: List[str] = []
        while len(codes) < count:
            code = "".join(secrets.choice(RECOVERY_CODE_ALPHABET) for _ in range(RECOVERY_CODE_LENGTH))
            if code not in codes:
                codes.append(code)
        return codes

    @staticmethod
    def generate_qr_code(provisioning_uri: str) -> str:
        """Render a provisioning URI as a PNG data URL."""
        qr = qrcode.QRCode(version=1, box_size=10, border=5)
        qr.add_data(provisioning_uri)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")
        img_buffer = io.BytesIO()
        img.save(img_buffer, format="PNG")

        return "data:image/png;base64," + base64.b64encode(img_buffer.getvalue()).decode()

    @staticmethod
    def verify_totp(secret: str, code: Optional[str], valid_window: int = 2, for_time: ForTime = None) -> bool:
        """Verify a TOTP code, tolerating ``valid_window`` time steps of drift each way."""
        if not secret or not code:
            return False
        code = code.replace(" ", "").strip()
        if not code.isdigit():
            return False
        return pyotp.TOTP(secret).verify(code, for_time=for_time, valid_window=valid_window)

    def _check(self, secret: str, code: Optional[str], for_time: ForTime = None) -> bool:
        return self.verify_totp(secret, code, self.settings.TOTP_VALID_WINDOW, for_time)

    # === Operations ===
    @service_operation(TwoFactorResult)
    async def setup(self, user_id: int) -> TwoFactorResult:
        """Generate and store a pending secret and return provisioning data."""
        user = await self.users.get_by_id(user_id)
        if not user:
            return TwoFactorResult.fail(AuthErrorType.USER_NOT_FOUND)
        if user.two_factor_enabled:
            return TwoFactorResult.fail(AuthErrorType.TWO_FACTOR_ALREADY_ENABLED)

        secret = self.generate_secret()
        await self.users.update_fields(user.id, two_factor_secret=secret)
        await self.session.commit()

        otpauth_url = pyotp.TOTP(secret).provisioning_uri(
            name=user.email,
            issuer_name=self.settings.TOTP_ISSUER,
        )
        logger.info(f"2FA setup started for user {user.id}")
        return TwoFactorResult.ok(
            "Two-factor authentication set up. Confirm it with a code from your app",
            secret=secret,
            manual_entry_key=secret,
            otpauth_url=otpauth_url,
            qr_code=self.generate_qr_code(otpauth_url),
        )

    @service_operation(TwoFactorResult)
    async def confirm(self, user_id: int, code: Optional[str], for_time: ForTime = None) -> TwoFactorResult:
        """Verify a code against the pending secret, enable 2FA and issue recovery codes."""
        user = await self.users.get_by_id(user_id)
        if not user:
            return TwoFactorResult.fail(AuthErrorType.USER_NOT_FOUND)
        if user.two_factor_enabled:
            return TwoFactorResult.fail(AuthErrorType.TWO_FACTOR_ALREADY_ENABLED)
        if not user.two_factor_secret:
            return TwoFactorResult.fail(AuthErrorType.TWO_FACTOR_NOT_CONFIGURED)
        if not code:
            return TwoFactorResult.fail(AuthErrorType.REQUIRED_FIELDS_MISSING, "Two-factor code is required")

        if not self._check(user.two_factor_secret, code, for_time):
            logger.warning(f"Invalid 2FA confirmation code for user {user.id}")
            return TwoFactorResult.fail(AuthErrorType.TWO_FACTOR_INVALID)

        recovery_codes = self.generate_recovery_codes(self.settings.RECOVERY_CODE_COUNT)
        await self.users.update_fields(
            user.id,
            two_factor_enabled=True,
            two_factor_recovery_codes=json.dumps(recovery_codes),
        )
        await self.session.commit()

        logger.info(f"2FA enabled for user {user.id}")
        return TwoFactorResult.ok(
            "Two-factor authentication enabled",
            recovery_codes=recovery_codes,
        )

    @service_operation(TwoFactorResult)
    async def verify(self, user_id: int, code: Optional[str], for_time: ForTime = None) -> TwoFactorResult:
        """Check a TOTP code for an enabled user. Does not change state."""
        user = await self.users.get_by_id(user_id)
        if not user:
            return TwoFactorResult.fail(AuthErrorType.USER_NOT_FOUND)
        if not user.two_factor_enabled or not user.two_factor_secret:
            return TwoFactorResult.fail(AuthErrorType.TWO_FACTOR_NOT_ENABLED)

        if not self._check(user.two_factor_secret, code, for_time):
            return TwoFactorResult.fail(AuthErrorType.TWO_FACTOR_INVALID)
        return TwoFactorResult.ok("Two-factor code verified")

    @service_operation(TwoFactorResult)
    async def disable(self, user_id: int) -> TwoFactorResult:
        """Turn 2FA off and forget the secret and recovery codes."""
        user = await self.users.get_by_id(user_id)
        if not user:
            return TwoFactorResult.fail(AuthErrorType.USER_NOT_FOUND)
        if not user.two_factor_enabled:
            return TwoFactorResult.fail(AuthErrorType.TWO_FACTOR_NOT_ENABLED)

        await self.users.update_fields(
            user.id,
            two_factor_enabled=False,
            two_factor_secret=None,
            two_factor_recovery_codes=None,
        )
        await self.session.commit()

        logger.info(f"2FA disabled for user {user.id}")
        return TwoFactorResult.ok("Two-factor authentication disabled")

    @service_operation(TwoFactorResult)
    async def verify_recovery_code(self, user_id: int, code: Optional[str]) -> TwoFactorResult:
        """Consume one recovery code. Each code succeeds exactly once."""
        user = await self.users.get_by_id(user_id)
        if not user:
            return TwoFactorResult.fail(AuthErrorType.USER_NOT_FOUND)
        if not user.two_factor_enabled or not user.two_factor_recovery_codes:
            return TwoFactorResult.fail(AuthErrorType.TWO_FACTOR_NOT_ENABLED)
        if not code:
            return TwoFactorResult.fail(AuthErrorType.RECOVERY_CODE_INVALID)

        codes = user.recovery_codes
        normalized = code.strip().upper()
        if normalized not in codes:
            logger.warning(f"Invalid recovery code for user {user.id}")
            return TwoFactorResult.fail(AuthErrorType.RECOVERY_CODE_INVALID)

        remaining = [c for c in codes if c != normalized]
        if not await self.users.replace_recovery_codes(user.id, codes, remaining):
            # Another request consumed a code first
            await self.session.rollback()
            return TwoFactorResult.fail(AuthErrorType.RECOVERY_CODE_INVALID)
        await self.session.commit()

        logger.info(f"Recovery code used for user {user.id}, {len(remaining)} remaining")
        return TwoFactorResult.ok("Recovery code accepted")
