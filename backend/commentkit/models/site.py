"""Site model - a registered customer domain.

Only verified sites receive dynamic CORS trust and widget tokens. The
ownership-proof workflow that flips ``verified`` lives in the dashboard.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String, false
from sqlalchemy.orm import Mapped, mapped_column

from commentkit.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Site(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Registered site.

    Attributes:
        id: UUID primary key.
        name: Display name.
        domain: Unique hostname (no scheme, no port).
        api_key: Unique key for server-to-server comment writes.
        owner_id: Owning user. NULL for legacy/unclaimed sites.
        verified: Domain ownership proven.
        verification_token: Token the owner publishes to prove ownership.
        verified_at: When verification succeeded.
    """

    __tablename__ = "sites"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    domain: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    api_key: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    owner_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=false(),
        default=False,
    )
    verification_token: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    verified_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
