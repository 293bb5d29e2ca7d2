"""
Database and maintenance commands.

Each command opens its own ``Database`` from the current settings and
disposes it before returning.
"""
import asyncio
from typing import Optional

import typer

from ...core.config import Settings, get_settings
from ...core.security import PasswordHasher, TokenIssuer
from ...db import Database, DatabaseError
from ...services import AuthService
from ..utils import console, print_error, print_info, print_success


async def _init_db(settings: Settings, drop: bool) -> None:
    database = Database(settings.DATABASE_URL, echo_sql=settings.ECHO_SQL)
    try:
        if drop:
            await database.drop_all()
        await database.create_all()
    finally:
        await database.close()


async def _create_admin(settings: Settings, email: str, password: str, name: str) -> bool:
    database = Database(settings.DATABASE_URL, echo_sql=settings.ECHO_SQL)
    try:
        await database.create_all()
        async with database.session() as session:
            service = AuthService(
                session,
                settings,
                PasswordHasher(rounds=settings.BCRYPT_ROUNDS),
                TokenIssuer.from_settings(settings),
            )
            return await service.ensure_admin(email, password, name)
    finally:
        await database.close()


async def _cleanup_tokens(settings: Settings, user_id: Optional[int]) -> int:
    database = Database(settings.DATABASE_URL, echo_sql=settings.ECHO_SQL)
    try:
        async with database.session() as session:
            service = AuthService(
                session,
                settings,
                PasswordHasher(rounds=settings.BCRYPT_ROUNDS),
                TokenIssuer.from_settings(settings),
            )
            return await service.cleanup_refresh_tokens(user_id)
    finally:
        await database.close()


def init_db(
    drop: bool = typer.Option(False, "--drop", help="Drop all tables first"),
) -> None:
    """Create the database tables."""
    settings = get_settings()
    if drop and not typer.confirm("This deletes every user and session. Continue?"):
        raise typer.Abort()
    try:
        asyncio.run(_init_db(settings, drop))
    except DatabaseError as e:
        print_error(f"Database initialization failed: {e}")
        raise typer.Exit(code=1)
    print_success("Database tables created")


def create_admin(
    email: str = typer.Option(..., prompt=True, help="Admin email"),
    password: str = typer.Option(
        ..., prompt=True, hide_input=True, confirmation_prompt=True, help="Admin password"
    ),
    name: str = typer.Option("Administrator", help="Display name"),
) -> None:
    """Create an admin account."""
    settings = get_settings()
    try:
        created = asyncio.run(_create_admin(settings, email, password, name))
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    if created:
        print_success(f"Admin {email} created")
    else:
        print_info(f"An account for {email} already exists")


def cleanup_tokens(
    user_id: Optional[int] = typer.Option(None, help="Only purge this user's tokens"),
) -> None:
    """Delete expired and revoked refresh tokens."""
    settings = get_settings()
    with console.status("Purging refresh tokens..."):
        count = asyncio.run(_cleanup_tokens(settings, user_id))
    print_success(f"Purged {count} refresh token(s)")
