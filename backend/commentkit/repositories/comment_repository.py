"""Repositories for pages and comments of a site."""

import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from commentkit.models.comment import Comment
from commentkit.models.like import CommentLike
from commentkit.models.page import Page
from commentkit.models.user import User


@dataclass(frozen=True)
class CommentRow:
    """An approved comment joined with its author and like count."""

    id: uuid.UUID
    parent_id: uuid.UUID | None
    content: str
    author_name: str | None
    author_email_hash: str | None
    user_id: uuid.UUID | None
    user_display_name: str | None
    user_email_hash: str | None
    created_at: datetime
    like_count: int


class PageRepository:
    """Stateless repository for Page table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, page_id: uuid.UUID) -> Page | None:
        """Fetch a page by primary key."""
        return await db.get(Page, page_id)

    @staticmethod
    async def get_by_slug(
        db: AsyncSession, *, site_id: uuid.UUID, slug: str
    ) -> Page | None:
        """Fetch a page by its slug within a site.

        Args:
            db: Async database session.
            site_id: Owning site.
            slug: Page identifier.

        Returns:
            Page if it exists, None otherwise.
        """
        stmt = select(Page).where(Page.site_id == site_id, Page.slug == slug)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create(
        db: AsyncSession,
        *,
        site_id: uuid.UUID,
        slug: str,
        title: str | None = None,
        url: str | None = None,
    ) -> Page:
        """Resolve a page, creating it on the first comment.

        Args:
            db: Async database session.
            site_id: Owning site.
            slug: Page identifier.
            title: Page title (only used on creation).
            url: Page URL (only used on creation).

        Returns:
            Existing or newly created Page.
        """
        existing = await PageRepository.get_by_slug(db, site_id=site_id, slug=slug)
        if existing is not None:
            return existing

        page = Page(site_id=site_id, slug=slug, title=title, url=url)
        try:
            async with db.begin_nested():
                db.add(page)
        except IntegrityError:
            winner = await PageRepository.get_by_slug(db, site_id=site_id, slug=slug)
            if winner is None:
                raise
            return winner
        return page


class CommentRepository:
    """Stateless repository for Comment table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, comment_id: uuid.UUID) -> Comment | None:
        """Fetch a comment by primary key."""
        return await db.get(Comment, comment_id)

    @staticmethod
    async def create(db: AsyncSession, **fields: object) -> Comment:
        """Insert a comment.

        Args:
            db: Async database session.
            **fields: Comment column values.

        Returns:
            Created Comment with server defaults loaded.
        """
        comment = Comment(**fields)
        db.add(comment)
        await db.flush()
        await db.refresh(comment)
        return comment

    @staticmethod
    async def list_approved(db: AsyncSession, page_id: uuid.UUID) -> list[CommentRow]:
        """Approved comments of a page, oldest first, with like counts.

        Args:
            db: Async database session.
            page_id: Page whose thread to list.

        Returns:
            List of CommentRow.
        """
        like_counts = (
            select(CommentLike.comment_id, func.count(CommentLike.id).label("likes"))
            .group_by(CommentLike.comment_id)
            .subquery()
        )
        stmt = (
            select(
                Comment,
                User.display_name,
                User.email_hash,
                func.coalesce(like_counts.c.likes, 0),
            )
            .outerjoin(User, User.id == Comment.user_id)
            .outerjoin(like_counts, like_counts.c.comment_id == Comment.id)
            .where(Comment.page_id == page_id, Comment.status == "approved")
            .order_by(Comment.created_at.asc())
        )
        result = await db.execute(stmt)
        return [
            CommentRow(
                id=comment.id,
                parent_id=comment.parent_id,
                content=comment.content,
                author_name=comment.author_name,
                author_email_hash=comment.author_email_hash,
                user_id=comment.user_id,
                user_display_name=display_name,
                user_email_hash=user_email_hash,
                created_at=comment.created_at,
                like_count=int(likes),
            )
            for comment, display_name, user_email_hash, likes in result.all()
        ]
