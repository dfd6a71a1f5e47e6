"""Initial schema: users, sessions, magic links, sites, pages, comments, likes.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_UUID_DEFAULT = sa.text("gen_random_uuid()")


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(as_uuid=True),
        server_default=_UUID_DEFAULT,
        primary_key=True,
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    # =========================================================================
    # Auth
    # =========================================================================
    op.create_table(
        "users",
        _id_column(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("email_hash", sa.String(32), nullable=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column(
            "is_superadmin",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_users_email_hash", "users", ["email_hash"])

    op.create_table(
        "sessions",
        _id_column(),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])
    op.create_index(
        "ix_sessions_token_expires", "sessions", ["token_hash", "expires_at"]
    )

    op.create_table(
        "magic_links",
        _id_column(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("token", sa.String(64), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "used", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        _created_at(),
    )
    op.create_index("ix_magic_links_email", "magic_links", ["email"])
    op.create_index(
        "ix_magic_links_token_used", "magic_links", ["token", "used", "expires_at"]
    )

    # =========================================================================
    # Sites and threads
    # =========================================================================
    op.create_table(
        "sites",
        _id_column(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False, unique=True),
        sa.Column("api_key", sa.String(64), nullable=False, unique=True),
        sa.Column(
            "owner_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "verified", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("verification_token", sa.String(64), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_sites_owner_id", "sites", ["owner_id"])

    op.create_table(
        "pages",
        _id_column(),
        sa.Column(
            "site_id",
            UUID(as_uuid=True),
            sa.ForeignKey("sites.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("slug", sa.String(500), nullable=False),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("url", sa.Text(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("site_id", "slug", name="uq_pages_site_slug"),
    )
    op.create_index("ix_pages_site_id", "pages", ["site_id"])

    op.create_table(
        "comments",
        _id_column(),
        sa.Column(
            "site_id",
            UUID(as_uuid=True),
            sa.ForeignKey("sites.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "page_id",
            UUID(as_uuid=True),
            sa.ForeignKey("pages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("author_name", sa.String(100), nullable=True),
        sa.Column("author_email", sa.String(255), nullable=True),
        sa.Column("author_email_hash", sa.String(32), nullable=True),
        sa.Column(
            "parent_id",
            UUID(as_uuid=True),
            sa.ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "status", sa.String(20), server_default="pending", nullable=False
        ),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'spam')",
            name="ck_comments_status",
        ),
        sa.CheckConstraint(
            "user_id IS NOT NULL OR author_name IS NOT NULL",
            name="ck_comments_author",
        ),
    )
    op.create_index("ix_comments_site_id", "comments", ["site_id"])
    op.create_index("ix_comments_page_id", "comments", ["page_id"])
    op.create_index("ix_comments_parent_id", "comments", ["parent_id"])

    # =========================================================================
    # Likes
    # =========================================================================
    op.create_table(
        "page_likes",
        _id_column(),
        sa.Column(
            "page_id",
            UUID(as_uuid=True),
            sa.ForeignKey("pages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _created_at(),
        sa.UniqueConstraint("page_id", "user_id", name="uq_page_likes_page_user"),
    )
    op.create_index("ix_page_likes_page_id", "page_likes", ["page_id"])
    op.create_index("ix_page_likes_user_id", "page_likes", ["user_id"])

    op.create_table(
        "comment_likes",
        _id_column(),
        sa.Column(
            "comment_id",
            UUID(as_uuid=True),
            sa.ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _created_at(),
        sa.UniqueConstraint(
            "comment_id", "user_id", name="uq_comment_likes_comment_user"
        ),
    )
    op.create_index("ix_comment_likes_comment_id", "comment_likes", ["comment_id"])
    op.create_index("ix_comment_likes_user_id", "comment_likes", ["user_id"])


def downgrade() -> None:
    op.drop_table("comment_likes")
    op.drop_table("page_likes")
    op.drop_table("comments")
    op.drop_table("pages")
    op.drop_table("sites")
    op.drop_table("magic_links")
    op.drop_table("sessions")
    op.drop_table("users")
