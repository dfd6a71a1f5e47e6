"""Like models - one like per (user, page) and per (user, comment)."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from commentkit.models.base import Base, UUIDPrimaryKeyMixin


class PageLike(Base, UUIDPrimaryKeyMixin):
    """A signed-in user's like on a page.

    Attributes:
        id: UUID primary key.
        page_id: Liked page.
        user_id: Liking user.
        created_at: When the like was recorded.
    """

    __tablename__ = "page_likes"
    __table_args__ = (
        UniqueConstraint("page_id", "user_id", name="uq_page_likes_page_user"),
    )

    page_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class CommentLike(Base, UUIDPrimaryKeyMixin):
    """A signed-in user's like on a comment.

    Attributes:
        id: UUID primary key.
        comment_id: Liked comment.
        user_id: Liking user.
        created_at: When the like was recorded.
    """

    __tablename__ = "comment_likes"
    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_likes_comment_user"),
    )

    comment_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
