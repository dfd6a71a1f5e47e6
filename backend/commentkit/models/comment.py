"""Comment model - threaded comments with moderation status."""

import uuid

from sqlalchemy import CheckConstraint, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from commentkit.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

COMMENT_STATUSES = ("pending", "approved", "rejected", "spam")


class Comment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Comment on a page.

    Either user_id (authenticated) or author_name (guest) must be set.

    Attributes:
        id: UUID primary key.
        site_id: Owning site.
        page_id: Thread the comment belongs to.
        user_id: Author, when signed in.
        author_name: Display name for guests.
        author_email: Optional guest email (never returned publicly).
        author_email_hash: MD5 of the email, for avatars.
        parent_id: Parent comment for replies.
        content: Sanitized body.
        status: pending / approved / rejected / spam.
        ip_address: Only stored when COLLECT_IP_ADDRESS is on.
        user_agent: Only stored when COLLECT_USER_AGENT is on.
    """

    __tablename__ = "comments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'spam')",
            name="ck_comments_status",
        ),
        CheckConstraint(
            "user_id IS NOT NULL OR author_name IS NOT NULL",
            name="ck_comments_author",
        ),
    )

    site_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("sites.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    page_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    author_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    author_email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    author_email_hash: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("comments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    content: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default="pending",
        default="pending",
    )
    ip_address: Mapped[str | None] = mapped_column(
        String(45),
        nullable=True,
    )
    user_agent: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
    )
