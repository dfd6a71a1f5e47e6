"""Session model - hashed bearer credentials.

Only the SHA-256 of the raw bearer secret is stored. The raw secret exists
in the redemption response and the client's cookie, nowhere else.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from commentkit.models.base import Base, UUIDPrimaryKeyMixin


class Session(Base, UUIDPrimaryKeyMixin):
    """30-day login session.

    Attributes:
        id: UUID primary key.
        user_id: Owning user. Sessions die with the user.
        token_hash: Unique SHA-256 hex of the raw bearer secret.
        expires_at: Sessions at or after this instant are ignored.
        created_at: Creation timestamp.
    """

    __tablename__ = "sessions"
    __table_args__ = (Index("ix_sessions_token_expires", "token_hash", "expires_at"),)

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
