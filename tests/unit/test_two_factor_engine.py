"""
Unit tests for the two-factor authentication engine.
"""
import string
import time

import pyotp
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from darnaauth.core.errors import AuthErrorType
from darnaauth.models import User
from darnaauth.repositories import UserRepository
from darnaauth.services import TwoFactorService


@pytest_asyncio.fixture
async def user(session: AsyncSession) -> User:
    user = await UserRepository(session).create(
        email="karim@darna.ma", hashed_password="x", name="Karim"
    )
    await session.commit()
    return user


async def enable_2fa(service: TwoFactorService, user_id: int):
    setup = await service.setup(user_id)
    assert setup.success, setup.message
    confirm = await service.confirm(user_id, pyotp.TOTP(setup.secret).now())
    assert confirm.success, confirm.message
    return setup.secret, confirm.recovery_codes


class TestPrimitives:

    def test_recovery_codes_shape(self):
        codes = TwoFactorService.generate_recovery_codes()
        assert len(codes) == 10
        assert len(set(codes)) == 10
        for code in codes:
            assert len(code) == 8
            assert code.isalnum()
            assert code == code.upper()

    def test_recovery_codes_use_the_full_alphanumeric_alphabet(self):
        symbols = set("".join(
            code for _ in range(50) for code in TwoFactorService.generate_recovery_codes()
        ))
        assert symbols <= set(string.ascii_uppercase + string.digits)
        assert symbols - set("0123456789ABCDEF")

    def test_secret_is_base32(self):
        secret = TwoFactorService.generate_secret()
        assert len(secret) == 32
        pyotp.TOTP(secret).now()

    def test_qr_code_is_png_data_url(self):
        uri = pyotp.TOTP(TwoFactorService.generate_secret()).provisioning_uri(name="a@b.com", issuer_name="Darna")
        assert TwoFactorService.generate_qr_code(uri).startswith("data:image/png;base64,")

    def test_valid_window_tolerates_two_steps_of_drift(self):
        secret = TwoFactorService.generate_secret()
        totp = pyotp.TOTP(secret)
        now = int(time.time())

        for offset in (-60, -30, 0, 30, 60):
            assert TwoFactorService.verify_totp(secret, totp.at(now + offset), for_time=now)
        assert not TwoFactorService.verify_totp(secret, totp.at(now - 90), for_time=now)
        assert not TwoFactorService.verify_totp(secret, totp.at(now + 90), for_time=now)

    @pytest.mark.parametrize("code", ["", None, "abcdef", "12 34"])
    def test_malformed_codes(self, code):
        assert not TwoFactorService.verify_totp(TwoFactorService.generate_secret(), code)

    def test_spaces_are_ignored(self):
        secret = TwoFactorService.generate_secret()
        code = pyotp.TOTP(secret).now()
        assert TwoFactorService.verify_totp(secret, f"{code[:3]} {code[3:]}")


class TestTwoFactorLifecycle:

    async def test_setup_returns_provisioning_data(self, two_factor_service: TwoFactorService, user: User):
        result = await two_factor_service.setup(user.id)

        assert result.success
        assert result.secret == result.manual_entry_key
        assert result.otpauth_url.startswith("otpauth://totp/")
        assert "Darna%20Test" in result.otpauth_url
        assert result.qr_code.startswith("data:image/png;base64,")
        # Pending until confirmed
        assert user.two_factor_enabled is False
        assert user.two_factor_secret == result.secret

    async def test_confirm_enables_and_issues_recovery_codes(
        self, two_factor_service: TwoFactorService, user: User
    ):
        _, codes = await enable_2fa(two_factor_service, user.id)

        assert len(codes) == 10
        assert user.two_factor_enabled is True
        assert user.recovery_codes == codes

    async def test_confirm_without_setup(self, two_factor_service: TwoFactorService, user: User):
        result = await two_factor_service.confirm(user.id, "123456")
        assert result.error_type == AuthErrorType.TWO_FACTOR_NOT_CONFIGURED

    async def test_confirm_with_wrong_code(self, two_factor_service: TwoFactorService, user: User):
        setup = await two_factor_service.setup(user.id)
        now = int(time.time())
        stale = pyotp.TOTP(setup.secret).at(now - 300)

        result = await two_factor_service.confirm(user.id, stale, for_time=now)
        assert result.error_type == AuthErrorType.TWO_FACTOR_INVALID
        assert result.status_code == 401
        assert user.two_factor_enabled is False

    async def test_setup_twice_after_enable_fails(self, two_factor_service: TwoFactorService, user: User):
        await enable_2fa(two_factor_service, user.id)

        assert (await two_factor_service.setup(user.id)).error_type == AuthErrorType.TWO_FACTOR_ALREADY_ENABLED
        assert (await two_factor_service.confirm(user.id, "123456")).error_type == AuthErrorType.TWO_FACTOR_ALREADY_ENABLED

    async def test_verify_does_not_mutate(self, two_factor_service: TwoFactorService, user: User):
        secret, codes = await enable_2fa(two_factor_service, user.id)

        assert (await two_factor_service.verify(user.id, pyotp.TOTP(secret).now())).success
        assert user.two_factor_enabled is True
        assert user.recovery_codes == codes

    async def test_disable_then_verify_reports_not_enabled(
        self, two_factor_service: TwoFactorService, user: User
    ):
        secret, _ = await enable_2fa(two_factor_service, user.id)

        assert (await two_factor_service.disable(user.id)).success
        assert user.two_factor_secret is None
        assert user.recovery_codes == []

        result = await two_factor_service.verify(user.id, pyotp.TOTP(secret).now())
        assert result.error_type == AuthErrorType.TWO_FACTOR_NOT_ENABLED
        assert (await two_factor_service.disable(user.id)).error_type == AuthErrorType.TWO_FACTOR_NOT_ENABLED

    async def test_recovery_codes_are_single_use(self, two_factor_service: TwoFactorService, user: User):
        _, codes = await enable_2fa(two_factor_service, user.id)

        for index, code in enumerate(codes):
            assert (await two_factor_service.verify_recovery_code(user.id, code.lower())).success
            again = await two_factor_service.verify_recovery_code(user.id, code)
            assert again.error_type == AuthErrorType.RECOVERY_CODE_INVALID
            assert user.recovery_codes == codes[index + 1:]

        assert user.recovery_codes == []
        assert user.two_factor_enabled is True

    async def test_recovery_code_requires_enabled_2fa(self, two_factor_service: TwoFactorService, user: User):
        result = await two_factor_service.verify_recovery_code(user.id, "ABCDEF12")
        assert result.error_type == AuthErrorType.TWO_FACTOR_NOT_ENABLED

    async def test_unknown_user(self, two_factor_service: TwoFactorService):
        assert (await two_factor_service.setup(999)).error_type == AuthErrorType.USER_NOT_FOUND
        assert (await two_factor_service.verify(999, "123456")).error_type == AuthErrorType.USER_NOT_FOUND
