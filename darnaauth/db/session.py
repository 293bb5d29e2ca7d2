"""
Database session management and connection handling.
"""
from __future__ import annotations
import logging
from typing import AsyncGenerator, Optional, Dict, Any
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine
)
from sqlalchemy.pool import NullPool, StaticPool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text

from .base import Base
from .exceptions import ConnectionError, DatabaseError


class Database:
    """Database connection and session management.

    Constructed explicitly at application start and disposed on shutdown;
    there is no module-level instance.
    """

    def __init__(
        self,
        database_url: str,
        echo_sql: bool = False,
        **kwargs: Any
    ) -> None:
        """Initialize the database connection.

        Args:
            database_url: Async SQLAlchemy connection URL.
            echo_sql: Log every emitted SQL statement.
            **kwargs: Additional keyword arguments passed to create_async_engine.
        """
        self.database_url = database_url
        self.echo_sql = echo_sql
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._logger = logging.getLogger(__name__)

        self._setup_engine(**kwargs)

    def _setup_engine(self, **kwargs: Any) -> None:
        """Set up the SQLAlchemy async engine."""
        if not self.database_url:
            raise ValueError("Database URL is required")

        engine_options: Dict[str, Any] = {
            "echo": self.echo_sql,
            "pool_pre_ping": True,
            **kwargs
        }

        # SQLite specific options; an in-memory database only lives as long
        # as its single connection.
        if "sqlite" in self.database_url:
            engine_options.update({
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool if ":memory:" in self.database_url else NullPool,
            })
        else:
            engine_options.setdefault("pool_recycle", 300)

        try:
            self.engine = create_async_engine(
                self.database_url,
                **engine_options
            )
            self.session_factory = async_sessionmaker(
                bind=self.engine,
                expire_on_commit=False,
                class_=AsyncSession
            )
            self._logger.info(
                f"Database engine initialized for {self._obfuscate_url(self.database_url)}"
            )
        except Exception as e:
            self._logger.error(f"Failed to initialize database engine: {e}")
            raise ConnectionError(
                "Failed to connect to database",
                context={"database_url": self._obfuscate_url(self.database_url)},
                original_exception=e,
            ) from e

    @staticmethod
    def _obfuscate_url(url: str) -> str:
        """Obfuscate sensitive information in database URLs for logging."""
        if not url:
            return ""

        if "@" in url:
            parts = url.split("@", 1)
            auth_part = parts[0].split("//", 1)[-1]
            if ":" in auth_part:
                user_pass = auth_part.split(":", 1)
                obfuscated = f"{user_pass[0]}:****@"
                return url.replace(auth_part + "@", obfuscated)
        return url

    async def create_all(self) -> None:
        """Create every table registered on the model metadata."""
        # Importing the models registers them on Base.metadata
        from .. import models  # noqa: F401

        if not self.engine:
            raise ConnectionError("Database engine not initialized")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self._logger.info("Database tables ensured")

    async def drop_all(self) -> None:
        if not self.engine:
            raise ConnectionError("Database engine not initialized")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def health_check(self) -> bool:
        """Check if the database is reachable."""
        if not self.engine:
            return False

        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                return True
        except Exception as e:
            self._logger.error(f"Database health check failed: {e}")
            return False

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an async database session with proper cleanup."""
        if not self.session_factory:
            raise ConnectionError("Database session factory not initialized")

        session = self.session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            self._logger.error(f"Database error: {e}")
            raise DatabaseError("Database operation failed", original_exception=e) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def close(self) -> None:
        """Close all database connections."""
        if self.engine:
            await self.engine.dispose()
            self._logger.info("Database connections closed")
