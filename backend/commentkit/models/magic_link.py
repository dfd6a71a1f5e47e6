"""Magic link model - single-use, time-limited email login tokens."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, false, func
from sqlalchemy.orm import Mapped, mapped_column

from commentkit.models.base import Base, UUIDPrimaryKeyMixin


class MagicLink(Base, UUIDPrimaryKeyMixin):
    """Emailed login token.

    Redeemable exactly once and only before expires_at. The used flag is
    flipped by a single conditional UPDATE, which is what makes redemption
    atomic.

    Attributes:
        id: UUID primary key.
        email: Lower-cased address the link was sent to.
        token: 64 hex chars (32 random bytes), unique.
        expires_at: 15 minutes after issuance.
        used: Set once redeemed.
        created_at: Issuance timestamp.
    """

    __tablename__ = "magic_links"
    __table_args__ = (
        Index("ix_magic_links_token_used", "token", "used", "expires_at"),
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    token: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    used: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=false(),
        default=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
