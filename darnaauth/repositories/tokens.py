# repositories/tokens.py
"""
Refresh token ledger.

Each issued refresh token has one row. A row moves from active to
revoked (rotated out, logged out, revoked-all) or is treated as expired
once ``expires_at`` passes; it is never reactivated.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import RefreshToken
from ..utils.datetime import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceInfo:
    """Client details recorded alongside a refresh token."""
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


class RefreshTokenLedger:
    """Per-user ledger of issued refresh tokens."""

    def __init__(self, session: AsyncSession, refresh_expire_days: int = 7) -> None:
        self.session = session
        self.lifetime = timedelta(days=refresh_expire_days)

    async def store(
        self,
        user_id: int,
        token: str,
        device_info: Optional[DeviceInfo] = None,
        expires_at: Optional[datetime] = None,
    ) -> RefreshToken:
        """Append a record for a newly issued refresh token."""
        device_info = device_info or DeviceInfo()
        now = utcnow()
        record = RefreshToken(
            token=token,
            user_id=user_id,
            created_at=now,
            updated_at=now,
            expires_at=expires_at or now + self.lifetime,
            is_revoked=False,
            user_agent=device_info.user_agent[:255] if device_info.user_agent else None,
            ip_address=device_info.ip_address,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def find(self, user_id: int, token: str) -> Optional[RefreshToken]:
        """Get the non-revoked record for ``token``."""
        result = await self.session.execute(
            select(RefreshToken).where(
                RefreshToken.user_id == user_id,
                RefreshToken.token == token,
                RefreshToken.is_revoked == False,  # noqa: E712
            )
        )
        return result.scalar_one_or_none()

    async def find_any(self, user_id: int, token: str) -> Optional[RefreshToken]:
        """Get the record for ``token`` whatever its state."""
        result = await self.session.execute(
            select(RefreshToken).where(
                RefreshToken.user_id == user_id,
                RefreshToken.token == token,
            )
        )
        return result.scalar_one_or_none()

    async def revoke(self, user_id: int, token: str) -> bool:
        """
        Revoke one refresh token.

        A single conditional UPDATE: returns True only for the call that
        flipped the row, so it doubles as an atomic claim during rotation.
        Revoking an absent or already revoked token is a no-op.
        """
        result = await self.session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.token == token,
                RefreshToken.is_revoked == False,  # noqa: E712
            )
            .values(is_revoked=True, revoked_at=utcnow(), updated_at=utcnow())
        )
        return result.rowcount == 1

    async def revoke_all(self, user_id: int) -> int:
        """Revoke every active refresh token of a user. Returns how many were revoked."""
        result = await self.session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.is_revoked == False,  # noqa: E712
            )
            .values(is_revoked=True, revoked_at=utcnow(), updated_at=utcnow())
        )
        return result.rowcount

    async def list_active(self, user_id: int) -> List[RefreshToken]:
        """Non-revoked, non-expired records, newest first."""
        result = await self.session.execute(
            select(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.is_revoked == False,  # noqa: E712
                RefreshToken.expires_at > utcnow(),
            )
            .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
        )
        return list(result.scalars().all())

    async def cleanup(self, user_id: Optional[int] = None) -> int:
        """Delete expired or revoked records. Returns how many were purged."""
        query = delete(RefreshToken).where(
            or_(
                RefreshToken.is_revoked == True,  # noqa: E712
                RefreshToken.expires_at <= utcnow(),
            )
        )
        if user_id is not None:
            query = query.where(RefreshToken.user_id == user_id)
        result = await self.session.execute(query.execution_options(synchronize_session=False))
        return result.rowcount
