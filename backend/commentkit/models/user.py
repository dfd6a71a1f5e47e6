"""User model - identity keyed by email.

Users are created lazily the first time a magic link for their email is
redeemed.
"""

from sqlalchemy import Boolean, String, false
from sqlalchemy.orm import Mapped, mapped_column

from commentkit.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Authenticated commenter or site owner.

    Attributes:
        id: UUID primary key.
        email: Unique, lower-cased email address.
        email_hash: MD5 of the email, for Gravatar avatars.
        display_name: Name shown next to comments. NULL until set.
        is_superadmin: Gates elevated dashboard operations.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    email_hash: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        index=True,
    )
    display_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    is_superadmin: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=false(),
        default=False,
    )
