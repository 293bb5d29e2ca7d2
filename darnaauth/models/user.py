# models/user.py
"""
User and refresh-token database models.
"""
import json
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.base import Base


class UserRole(str, Enum):
    """Marketplace roles."""
    VISITOR = "visitor"
    INDIVIDUAL = "individual"
    BUSINESS = "business"
    ADMIN = "admin"


class SubscriptionType(str, Enum):
    """Subscription tiers."""
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"


class User(Base):
    """Marketplace user and credential record."""
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.VISITOR.value, index=True, nullable=False)
    subscription_type: Mapped[str] = mapped_column(
        String(20), default=SubscriptionType.FREE.value, index=True, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_kyc_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    two_factor_secret: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    two_factor_recovery_codes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON list
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def recovery_codes(self) -> List[str]:
        """Remaining recovery codes."""
        if not self.two_factor_recovery_codes:
            return []
        return json.loads(self.two_factor_recovery_codes)

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class RefreshToken(Base):
    """Refresh token ledger entry. Revocation is soft; rows are only removed by cleanup."""
    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(String(1024), unique=True, index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)

    # Relationships
    user = relationship("User", back_populates="refresh_tokens", foreign_keys=[user_id])

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def __repr__(self) -> str:
        return f"<RefreshToken user_id={self.user_id} revoked={self.is_revoked}>"
