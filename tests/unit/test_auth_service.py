"""
Unit tests for the authentication service.
"""
import asyncio
import time
from datetime import timedelta

import pyotp
import pytest
import pytest_asyncio

from darnaauth.core.errors import AuthErrorType
from darnaauth.core.security import TokenIdentity, TokenType
from darnaauth.db import Database
from darnaauth.repositories import DeviceInfo, UserRepository
from darnaauth.schemas import AuthResult, RegisterRequest
from darnaauth.services import AuthService
from darnaauth.utils.datetime import utcnow

PASSWORD = "Secret123"
DEVICE = DeviceInfo(user_agent="pytest", ip_address="127.0.0.1")


@pytest_asyncio.fixture
async def registered(auth_service: AuthService) -> AuthResult:
    result = await auth_service.register(
        {"email": "a@b.com", "password": PASSWORD, "name": "Amina"}, DEVICE
    )
    assert result.success, result.message
    return result


class TestRegister:

    async def test_register_returns_tokens_and_sanitized_user(self, registered: AuthResult):
        assert registered.status_code == 201
        assert registered.access_token and registered.refresh_token
        assert registered.token_type == "bearer"
        assert registered.expires_in == 15 * 60
        assert registered.user.email == "a@b.com"
        assert registered.user.role == "visitor"

        body = registered.to_response_body()
        assert "hashedPassword" not in body["user"]
        assert "twoFactorSecret" not in body["user"]
        assert body["accessToken"] == registered.access_token

    async def test_password_is_stored_hashed(self, auth_service: AuthService, registered: AuthResult):
        user = await UserRepository(auth_service.session).get_by_id(registered.user.id)
        assert user.hashed_password != PASSWORD
        assert auth_service.hasher.verify(PASSWORD, user.hashed_password)

    async def test_duplicate_email_in_any_case(self, auth_service: AuthService, registered: AuthResult):
        result = await auth_service.register({"email": "A@B.COM", "password": PASSWORD, "name": "Other"})
        assert not result.success
        assert result.error_type == AuthErrorType.EMAIL_ALREADY_REGISTERED
        assert result.status_code == 400

    @pytest.mark.parametrize(
        "payload, error_type",
        [
            ({"email": "a@b.com", "password": PASSWORD}, AuthErrorType.REQUIRED_FIELDS_MISSING),
            ({"email": "not-an-email", "password": PASSWORD, "name": "Amina"}, AuthErrorType.EMAIL_INVALID),
            ({"email": "a@b.com", "password": "weak", "name": "Amina"}, AuthErrorType.PASSWORD_WEAK),
            ({"email": "a@b.com", "password": "Secret123\x00", "name": "Amina"}, AuthErrorType.PASSWORD_WEAK),
            ({"email": "a@b.com", "password": PASSWORD, "name": "A"}, AuthErrorType.NAME_INVALID),
            ({"email": "a@b.com", "password": PASSWORD, "name": "Amina", "role": "root"}, AuthErrorType.ROLE_INVALID),
        ],
    )
    async def test_validation(self, auth_service: AuthService, payload, error_type):
        result = await auth_service.register(payload)
        assert result.error_type == error_type
        assert result.error["type"] == error_type.value

    async def test_accepts_request_model(self, auth_service: AuthService):
        data = RegisterRequest(email="biz@b.com", password=PASSWORD, name="Agence", role="business")
        result = await auth_service.register(data)
        assert result.success
        assert result.user.role == "business"


class TestLogin:

    async def test_register_then_login(self, auth_service: AuthService, registered: AuthResult):
        result = await auth_service.login({"email": "a@b.com", "password": PASSWORD}, DEVICE)

        assert result.success
        payload = auth_service.validate_access_token(result.access_token)
        assert payload.user_id == registered.user.id
        assert result.user.last_login is not None

    async def test_email_is_case_insensitive(self, auth_service: AuthService, registered: AuthResult):
        result = await auth_service.login({"email": " A@B.com ", "password": PASSWORD})
        assert result.success

    async def test_unknown_email_and_wrong_password_look_the_same(
        self, auth_service: AuthService, registered: AuthResult
    ):
        unknown = await auth_service.login({"email": "nobody@b.com", "password": PASSWORD})
        wrong = await auth_service.login({"email": "a@b.com", "password": "Wrong1234"})

        assert unknown.error_type == wrong.error_type == AuthErrorType.INVALID_CREDENTIALS
        assert unknown.message == wrong.message
        assert wrong.status_code == 401

    async def test_wrong_then_correct_password(self, auth_service: AuthService, registered: AuthResult):
        for _ in range(3):
            assert not (await auth_service.login({"email": "a@b.com", "password": "Wrong1234"})).success
        assert (await auth_service.login({"email": "a@b.com", "password": PASSWORD})).success

    async def test_missing_fields(self, auth_service: AuthService):
        result = await auth_service.login({"email": "a@b.com"})
        assert result.error_type == AuthErrorType.REQUIRED_FIELDS_MISSING

    async def test_inactive_account(self, auth_service: AuthService, registered: AuthResult):
        await UserRepository(auth_service.session).update_fields(registered.user.id, is_active=False)
        await auth_service.session.commit()

        result = await auth_service.login({"email": "a@b.com", "password": PASSWORD})
        assert result.error_type == AuthErrorType.ACCOUNT_INACTIVE
        assert result.status_code == 403

    async def test_two_factor_gate(self, auth_service: AuthService, registered: AuthResult):
        user_id = registered.user.id
        setup = await auth_service.two_factor.setup(user_id)
        totp = pyotp.TOTP(setup.secret)
        assert (await auth_service.two_factor.confirm(user_id, totp.now())).success

        pending = await auth_service.login({"email": "a@b.com", "password": PASSWORD})
        assert pending.success is False
        assert pending.requires_2fa is True
        assert pending.status_code == 200
        assert pending.access_token is None
        assert pending.to_response_body()["requires2FA"] is True

        wrong = await auth_service.login(
            {"email": "a@b.com", "password": PASSWORD, "twoFactorToken": totp.at(int(time.time()) - 300)}
        )
        assert wrong.error_type == AuthErrorType.TWO_FACTOR_INVALID

        ok = await auth_service.login({"email": "a@b.com", "password": PASSWORD, "twoFactorToken": totp.now()})
        assert ok.success
        assert ok.access_token


class TestRefresh:

    async def test_rotation(self, auth_service: AuthService, registered: AuthResult):
        rotated = await auth_service.refresh(registered.refresh_token, DEVICE)

        assert rotated.success
        assert rotated.refresh_token != registered.refresh_token
        assert auth_service.issuer.verify(rotated.refresh_token, TokenType.REFRESH) is not None

        reused = await auth_service.refresh(registered.refresh_token, DEVICE)
        assert reused.error_type == AuthErrorType.TOKEN_REVOKED

        again = await auth_service.refresh(rotated.refresh_token, DEVICE)
        assert again.success

    async def test_access_token_cannot_refresh(self, auth_service: AuthService, registered: AuthResult):
        result = await auth_service.refresh(registered.access_token)
        assert result.error_type == AuthErrorType.TOKEN_INVALID

    async def test_unknown_token(self, auth_service: AuthService, registered: AuthResult):
        identity = TokenIdentity(registered.user.id, "a@b.com", "visitor")
        never_stored = auth_service.issuer.mint_refresh_token(identity)
        assert (await auth_service.refresh(never_stored)).error_type == AuthErrorType.TOKEN_INVALID
        assert (await auth_service.refresh(None)).error_type == AuthErrorType.TOKEN_MISSING

    async def test_expired_refresh_token_is_revoked(self, auth_service: AuthService, registered: AuthResult):
        user_id = registered.user.id
        identity = TokenIdentity(user_id, "a@b.com", "visitor")
        expired = auth_service.issuer.mint_refresh_token(identity, expires_delta=timedelta(seconds=-1))
        await auth_service.ledger.store(user_id, expired, expires_at=utcnow() - timedelta(seconds=1))
        await auth_service.session.commit()

        result = await auth_service.refresh(expired)
        assert result.error_type == AuthErrorType.TOKEN_EXPIRED
        assert result.status_code == 401

        record = await auth_service.ledger.find_any(user_id, expired)
        assert record.is_revoked is True

    async def test_ledger_expiry_wins_over_jwt_expiry(self, auth_service: AuthService, registered: AuthResult):
        user_id = registered.user.id
        token = auth_service.issuer.mint_refresh_token(TokenIdentity(user_id, "a@b.com", "visitor"))
        await auth_service.ledger.store(user_id, token, expires_at=utcnow() - timedelta(seconds=1))
        await auth_service.session.commit()

        assert (await auth_service.refresh(token)).error_type == AuthErrorType.TOKEN_EXPIRED

    async def test_inactive_user_cannot_refresh(self, auth_service: AuthService, registered: AuthResult):
        await UserRepository(auth_service.session).update_fields(registered.user.id, is_active=False)
        await auth_service.session.commit()

        result = await auth_service.refresh(registered.refresh_token)
        assert result.error_type == AuthErrorType.ACCOUNT_INACTIVE

    async def test_concurrent_refreshes_have_one_winner(self, tmp_path, settings, hasher, issuer):
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'rotation.db'}")
        await database.create_all()
        try:
            async with database.session() as session:
                first = await AuthService(session, settings, hasher, issuer).register(
                    {"email": "race@b.com", "password": PASSWORD, "name": "Amina"}
                )
            assert first.success

            async def refresh_in_own_session():
                async with database.session() as session:
                    result = await AuthService(session, settings, hasher, issuer).refresh(
                        first.refresh_token, DEVICE
                    )
                    return result.success, result.error_type

            outcomes = await asyncio.gather(*(refresh_in_own_session() for _ in range(4)))
        finally:
            await database.close()

        assert sorted(outcomes, key=lambda o: not o[0]) == [
            (True, None),
            (False, AuthErrorType.TOKEN_REVOKED),
            (False, AuthErrorType.TOKEN_REVOKED),
            (False, AuthErrorType.TOKEN_REVOKED),
        ]


class TestSessions:

    async def test_logout_revokes_presented_token(self, auth_service: AuthService, registered: AuthResult):
        result = await auth_service.logout(registered.user.id, registered.refresh_token)
        assert result.success
        assert result.revoked_count == 1

        refreshed = await auth_service.refresh(registered.refresh_token)
        assert refreshed.error_type == AuthErrorType.TOKEN_REVOKED

    async def test_logout_without_token_succeeds(self, auth_service: AuthService, registered: AuthResult):
        result = await auth_service.logout(registered.user.id)
        assert result.success
        assert result.revoked_count == 0

    async def test_revoke_all(self, auth_service: AuthService, registered: AuthResult):
        await auth_service.login({"email": "a@b.com", "password": PASSWORD})

        result = await auth_service.revoke_all_refresh_tokens(registered.user.id)
        assert result.revoked_count == 2
        assert (await auth_service.list_refresh_tokens(registered.user.id)).count == 0

    async def test_list_refresh_tokens_masks_values(self, auth_service: AuthService, registered: AuthResult):
        result = await auth_service.list_refresh_tokens(registered.user.id)

        assert result.count == 1
        info = result.refresh_tokens[0]
        assert info.user_agent == "pytest"
        assert registered.refresh_token not in info.token_preview
        assert "..." in info.token_preview

    async def test_cleanup(self, auth_service: AuthService, registered: AuthResult):
        await auth_service.logout(registered.user.id, registered.refresh_token)
        assert await auth_service.cleanup_refresh_tokens() == 1


class TestRecoveryLogin:

    async def test_recovery_code_opens_one_session(self, auth_service: AuthService, registered: AuthResult):
        user_id = registered.user.id
        setup = await auth_service.two_factor.setup(user_id)
        confirm = await auth_service.two_factor.confirm(user_id, pyotp.TOTP(setup.secret).now())
        code = confirm.recovery_codes[0]

        first = await auth_service.login_with_recovery_code("a@b.com", code, DEVICE)
        assert first.success
        assert first.access_token

        second = await auth_service.login_with_recovery_code("a@b.com", code, DEVICE)
        assert second.error_type == AuthErrorType.RECOVERY_CODE_INVALID

    async def test_unknown_email(self, auth_service: AuthService):
        result = await auth_service.login_with_recovery_code("nobody@b.com", "ABCDEF12")
        assert result.error_type == AuthErrorType.USER_NOT_FOUND


class TestLookups:

    async def test_get_user(self, auth_service: AuthService, registered: AuthResult):
        by_id = await auth_service.get_user_by_id(registered.user.id)
        by_email = await auth_service.get_user_by_email("A@b.com")
        assert by_id == by_email
        assert await auth_service.get_user_by_id(999) is None

    async def test_validate_access_token(self, auth_service: AuthService, registered: AuthResult):
        described = auth_service.describe_access_token(registered.access_token)
        assert described.success
        assert described.claims.email == "a@b.com"
        assert auth_service.validate_access_token(registered.refresh_token) is None

    async def test_ensure_admin(self, auth_service: AuthService):
        assert await auth_service.ensure_admin("admin@darna.ma", "Admin1234") is True
        assert await auth_service.ensure_admin("admin@darna.ma", "Admin1234") is False
        admin = await auth_service.get_user_by_email("admin@darna.ma")
        assert admin.role == "admin"
        assert admin.is_verified is True

    async def test_bootstrapped_admin_can_log_in(self, auth_service: AuthService):
        assert await auth_service.ensure_admin(" Admin@Darna.ma ", "Admin1234")

        result = await auth_service.login({"email": "admin@darna.ma", "password": "Admin1234"})
        assert result.success
        assert result.user.role == "admin"

    @pytest.mark.parametrize("email", ["admin@darna.local", "admin@localhost", "not-an-email"])
    async def test_ensure_admin_rejects_emails_login_would_refuse(self, auth_service: AuthService, email):
        assert not (await auth_service.login({"email": email, "password": "Admin1234"})).success
        with pytest.raises(ValueError, match="Admin email rejected"):
            await auth_service.ensure_admin(email, "Admin1234")
        assert await auth_service.get_user_by_email(email) is None


class TestInternalErrors:

    async def test_unexpected_failure_becomes_internal_error(
        self, auth_service: AuthService, registered: AuthResult, monkeypatch
    ):
        async def broken(*args, **kwargs):
            raise RuntimeError("database exploded")

        monkeypatch.setattr(auth_service.users, "get_by_email", broken)
        result = await auth_service.login({"email": "a@b.com", "password": PASSWORD})

        assert result.error_type == AuthErrorType.INTERNAL_ERROR
        assert result.status_code == 500
        assert "exploded" not in result.message
