"""
Pytest configuration and fixtures for the Darna auth tests.
"""
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from darnaauth import create_app
from darnaauth.core.config import Settings
from darnaauth.core.security import PasswordHasher, TokenIssuer
from darnaauth.db import Database
from darnaauth.services import AuthService, TwoFactorService

TEST_PASSWORD = "Secret123"


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: in-memory database and cheap bcrypt."""
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        JWT_ACCESS_SECRET="test-access-secret",
        JWT_REFRESH_SECRET="test-refresh-secret",
        BCRYPT_ROUNDS=4,
        TOTP_ISSUER="Darna Test",
    )


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """A fresh in-memory database with all tables created."""
    db = Database(settings.DATABASE_URL)
    await db.create_all()
    yield db
    await db.close()


@pytest.fixture
def hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher(rounds=settings.BCRYPT_ROUNDS)


@pytest.fixture
def issuer(settings: Settings) -> TokenIssuer:
    return TokenIssuer.from_settings(settings)


@pytest_asyncio.fixture
async def session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session() as s:
        yield s


@pytest.fixture
def auth_service(session, settings, hasher, issuer) -> AuthService:
    return AuthService(session, settings, hasher, issuer)


@pytest.fixture
def two_factor_service(session, settings) -> TwoFactorService:
    return TwoFactorService(session, settings)


@pytest.fixture
def app(settings: Settings, database: Database):
    """Application wired to the test database."""
    return create_app(settings=settings, database=database)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client talking to the app in-process."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def user_data() -> Dict[str, str]:
    """Registration payload of the default test user."""
    return {
        "email": "amina@darna.ma",
        "password": TEST_PASSWORD,
        "name": "Amina Benali",
        "phone": "+212600000000",
        "role": "individual",
    }


@pytest.fixture
def register_user(client: AsyncClient, user_data) -> Callable[..., Awaitable[Dict[str, Any]]]:
    """Register a user over HTTP and return the response body."""

    async def _register(**overrides: Any) -> Dict[str, Any]:
        payload = {**user_data, **overrides}
        response = await client.post("/api/auth/register", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _register
