"""Repository for page and comment likes.

Likes are idempotent: liking twice or unliking something never liked is a
no-op, enforced by the (target, user) unique constraints.
"""

import uuid
from typing import TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from commentkit.models.like import CommentLike, PageLike

_LikeModel = TypeVar("_LikeModel", PageLike, CommentLike)


def _target_column(model: type[_LikeModel]):
    return model.page_id if model is PageLike else model.comment_id


class LikeRepository:
    """Stateless repository for PageLike / CommentLike operations.

    All methods are static — no instance state. ``model`` selects the table.
    """

    @staticmethod
    async def add(
        db: AsyncSession,
        model: type[_LikeModel],
        *,
        target_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> bool:
        """Record a like.

        Args:
            db: Async database session.
            model: PageLike or CommentLike.
            target_id: Page or comment id.
            user_id: Liking user.

        Returns:
            True if a new like was stored, False if it already existed.
        """
        column = _target_column(model)
        exists = await db.execute(
            select(model.id).where(column == target_id, model.user_id == user_id)
        )
        if exists.first() is not None:
            return False

        like = model(user_id=user_id, **{column.key: target_id})
        try:
            async with db.begin_nested():
                db.add(like)
        except IntegrityError:
            return False
        return True

    @staticmethod
    async def remove(
        db: AsyncSession,
        model: type[_LikeModel],
        *,
        target_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> bool:
        """Remove a like.

        Returns:
            True if a like was deleted.
        """
        column = _target_column(model)
        result = await db.execute(
            delete(model).where(column == target_id, model.user_id == user_id)
        )
        return result.rowcount > 0

    @staticmethod
    async def stats(
        db: AsyncSession,
        model: type[_LikeModel],
        *,
        target_id: uuid.UUID,
        user_id: uuid.UUID | None,
    ) -> tuple[int, bool]:
        """Like total and whether the given user is among the likers.

        Args:
            db: Async database session.
            model: PageLike or CommentLike.
            target_id: Page or comment id.
            user_id: Viewer, or None for anonymous.

        Returns:
            (total_likes, user_liked)
        """
        column = _target_column(model)
        total = await db.scalar(
            select(func.count(model.id)).where(column == target_id)
        )
        user_liked = False
        if user_id is not None:
            mine = await db.execute(
                select(model.id).where(column == target_id, model.user_id == user_id)
            )
            user_liked = mine.first() is not None
        return int(total or 0), user_liked

    @staticmethod
    async def liked_comment_ids(
        db: AsyncSession,
        *,
        comment_ids: list[uuid.UUID],
        user_id: uuid.UUID | None,
    ) -> set[uuid.UUID]:
        """Which of the given comments the user has liked.

        Args:
            db: Async database session.
            comment_ids: Comments to check.
            user_id: Viewer, or None for anonymous.

        Returns:
            Subset of comment_ids liked by the user.
        """
        if user_id is None or not comment_ids:
            return set()
        result = await db.execute(
            select(CommentLike.comment_id).where(
                CommentLike.comment_id.in_(comment_ids),
                CommentLike.user_id == user_id,
            )
        )
        return set(result.scalars().all())
