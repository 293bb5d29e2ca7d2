#main __init__.py
"""
Darna authentication service.

Registration, login, JWT access/refresh tokens with rotation, and TOTP
two-factor authentication for the Darna real-estate marketplace, served
by FastAPI.
"""

__version__ = "0.1.0"

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .api import build_router, register_exception_handlers
from .core.config import Settings, get_settings
from .core.security import PasswordHasher, TokenIssuer
from .db import Database
from .middleware import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


async def bootstrap_admin(app: FastAPI) -> None:
    """Create the configured admin account if it does not exist yet."""
    from .services import AuthService

    settings: Settings = app.state.settings
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.info("No admin credentials configured, skipping admin bootstrap")
        return

    async with app.state.database.session() as session:
        service = AuthService(session, settings, app.state.hasher, app.state.issuer)
        created = await service.ensure_admin(
            settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, settings.ADMIN_NAME
        )
    if created:
        logger.info("Initial admin created successfully")
    else:
        logger.info("Admin already exists, skipping creation")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up Darna auth service...")
    database: Database = app.state.database
    try:
        await database.create_all()
        await bootstrap_admin(app)
    except Exception as e:
        logger.error(f"Error during startup: {e}")
        raise

    yield

    logger.info("Shutting down Darna auth service...")
    await database.close()


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    **kwargs,
) -> FastAPI:
    """
    Create and configure the application.

    Args:
        settings: Settings to use; read from the environment when omitted.
        database: An existing ``Database``; built from ``settings.DATABASE_URL``
            when omitted.
        **kwargs: Additional keyword arguments passed to ``FastAPI``.

    Returns:
        FastAPI: the configured application. Shared services live on
        ``app.state`` (``settings``, ``database``, ``hasher``, ``issuer``).
    """
    settings = settings or get_settings()

    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info(f"Creating {settings.APP_NAME} application (version: {__version__})")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Authentication and session management for the Darna marketplace",
        version=__version__,
        debug=settings.DEBUG,
        lifespan=lifespan,
        **kwargs,
    )

    app.state.settings = settings
    app.state.database = database or Database(settings.DATABASE_URL, echo_sql=settings.ECHO_SQL)
    app.state.hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    app.state.issuer = TokenIssuer.from_settings(settings)

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    app.include_router(build_router(settings.API_PREFIX))

    @app.get("/health", include_in_schema=True)
    async def health_check():
        """Health check endpoint."""
        connected = await app.state.database.health_check()
        return {
            "status": "ok" if connected else "degraded",
            "database": "connected" if connected else "disconnected",
            "version": __version__,
        }

    logger.info("Application initialization complete")
    return app


__all__ = ["create_app", "lifespan", "bootstrap_admin", "__version__"]
