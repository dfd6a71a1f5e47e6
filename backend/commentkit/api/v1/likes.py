"""Like endpoints for pages and comments.

Endpoints:
- GET|POST|DELETE /pages/{page_id}/likes
- GET|POST|DELETE /comments/{comment_id}/likes

Every response is the fresh {total_likes, user_liked} pair so the widget
can reconcile its optimistic update. POST/DELETE require a signed-in user
and a CSRF token; both are idempotent.
"""

import uuid

from fastapi import APIRouter

from commentkit.api.deps import CsrfProtected, CurrentUser, DbSession, OptionalUser
from commentkit.core.errors import NotFoundError
from commentkit.core.responses import DataResponse
from commentkit.models.like import CommentLike, PageLike
from commentkit.repositories.comment_repository import (
    CommentRepository,
    PageRepository,
)
from commentkit.repositories.like_repository import LikeRepository

router = APIRouter()


def _stats(total: int, user_liked: bool) -> DataResponse[dict]:
    return DataResponse(data={"total_likes": total, "user_liked": user_liked})


# ===================================================================
# Page likes
# ===================================================================


async def _require_page(db: DbSession, page_id: uuid.UUID) -> None:
    if await PageRepository.get_by_id(db, page_id) is None:
        raise NotFoundError("Page", str(page_id))


@router.get("/pages/{page_id}/likes")
async def get_page_likes(
    page_id: uuid.UUID, db: DbSession, user: OptionalUser
) -> DataResponse[dict]:
    """Like stats of a page."""
    total, liked = await LikeRepository.stats(
        db, PageLike, target_id=page_id, user_id=user.id if user else None
    )
    return _stats(total, liked)


@router.post("/pages/{page_id}/likes")
async def like_page(
    page_id: uuid.UUID,
    user: CurrentUser,
    _csrf: CsrfProtected,
    db: DbSession,
) -> DataResponse[dict]:
    """Like a page. Liking twice is a no-op."""
    await _require_page(db, page_id)
    await LikeRepository.add(db, PageLike, target_id=page_id, user_id=user.id)
    await db.commit()
    total, liked = await LikeRepository.stats(
        db, PageLike, target_id=page_id, user_id=user.id
    )
    return _stats(total, liked)


@router.delete("/pages/{page_id}/likes")
async def unlike_page(
    page_id: uuid.UUID,
    user: CurrentUser,
    _csrf: CsrfProtected,
    db: DbSession,
) -> DataResponse[dict]:
    """Remove the caller's like from a page."""
    await LikeRepository.remove(db, PageLike, target_id=page_id, user_id=user.id)
    await db.commit()
    total, liked = await LikeRepository.stats(
        db, PageLike, target_id=page_id, user_id=user.id
    )
    return _stats(total, liked)


# ===================================================================
# Comment likes
# ===================================================================


async def _require_comment(db: DbSession, comment_id: uuid.UUID) -> None:
    if await CommentRepository.get_by_id(db, comment_id) is None:
        raise NotFoundError("Comment", str(comment_id))


@router.get("/comments/{comment_id}/likes")
async def get_comment_likes(
    comment_id: uuid.UUID, db: DbSession, user: OptionalUser
) -> DataResponse[dict]:
    """Like stats of a comment."""
    total, liked = await LikeRepository.stats(
        db, CommentLike, target_id=comment_id, user_id=user.id if user else None
    )
    return _stats(total, liked)


@router.post("/comments/{comment_id}/likes")
async def like_comment(
    comment_id: uuid.UUID,
    user: CurrentUser,
    _csrf: CsrfProtected,
    db: DbSession,
) -> DataResponse[dict]:
    """Like a comment. Liking twice is a no-op."""
    await _require_comment(db, comment_id)
    await LikeRepository.add(db, CommentLike, target_id=comment_id, user_id=user.id)
    await db.commit()
    total, liked = await LikeRepository.stats(
        db, CommentLike, target_id=comment_id, user_id=user.id
    )
    return _stats(total, liked)


@router.delete("/comments/{comment_id}/likes")
async def unlike_comment(
    comment_id: uuid.UUID,
    user: CurrentUser,
    _csrf: CsrfProtected,
    db: DbSession,
) -> DataResponse[dict]:
    """Remove the caller's like from a comment."""
    await LikeRepository.remove(
        db, CommentLike, target_id=comment_id, user_id=user.id
    )
    await db.commit()
    total, liked = await LikeRepository.stats(
        db, CommentLike, target_id=comment_id, user_id=user.id
    )
    return _stats(total, liked)
