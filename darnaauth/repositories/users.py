# repositories/users.py
"""
Credential store: reads and writes of the ``users`` table.

Repositories only flush; the calling service owns the transaction and
commits once per operation.
"""
import json
import logging
from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.exceptions import ConflictError
from ..models import User
from ..utils.datetime import utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository:
    """Persistence operations on users."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email, case-insensitively."""
        result = await self.session.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def create(self, **fields: Any) -> User:
        """Insert a new user. Raises ConflictError on a duplicate email."""
        fields["email"] = normalize_email(fields["email"])
        user = User(**fields)
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                "Email already registered",
                context={"email": fields["email"]},
                original_exception=e,
            ) from e
        return user

    async def update_fields(self, user_id: int, **values: Any) -> bool:
        """Apply a single UPDATE to one user. Returns whether a row matched."""
        values.setdefault("updated_at", utcnow())
        result = await self.session.execute(
            update(User).where(User.id == user_id).values(**values)
        )
        return result.rowcount == 1

    async def touch_last_login(self, user_id: int) -> None:
        await self.update_fields(user_id, last_login=utcnow())

    async def replace_recovery_codes(
        self,
        user_id: int,
        expected: List[str],
        remaining: List[str],
    ) -> bool:
        """
        Compare-and-swap the stored recovery codes.

        Succeeds only if the stored list still equals ``expected``, so two
        concurrent uses of the same code cannot both consume it.
        """
        result = await self.session.execute(
            update(User)
            .where(
                User.id == user_id,
                User.two_factor_enabled == True,  # noqa: E712
                User.two_factor_recovery_codes == json.dumps(expected),
            )
            .values(
                two_factor_recovery_codes=json.dumps(remaining),
                updated_at=utcnow(),
            )
        )
        return result.rowcount == 1
