"""Site comment endpoints used by the widget.

Endpoints:
- GET /sites/comments — approved comments of a page
- POST /sites/comments — create a comment (CSRF + origin token, or API key)
"""

import hmac
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Query, Request, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from commentkit.api.deps import (
    ApiKeyOrCsrf,
    DbSession,
    OptionalUser,
    validate_origin_domain,
)
from commentkit.core.config import settings
from commentkit.core.errors import ForbiddenError, NotFoundError, ValidationError
from commentkit.core.responses import DataResponse
from commentkit.core.sanitize import sanitize_comment_content
from commentkit.models.like import PageLike
from commentkit.models.user import User
from commentkit.repositories.comment_repository import (
    CommentRepository,
    CommentRow,
    PageRepository,
)
from commentkit.repositories.like_repository import LikeRepository
from commentkit.repositories.site_repository import SiteRepository
from commentkit.repositories.user_repository import email_hash

logger = logging.getLogger(__name__)

router = APIRouter()


# ===================================================================
# Request models
# ===================================================================


class CreateCommentRequest(BaseModel):
    """Request body for POST /sites/comments."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    domain: str = Field(min_length=1, max_length=255)
    page_id: str = Field(alias="pageId", min_length=1, max_length=500)
    content: str = Field(min_length=1, max_length=50_000)
    author_name: str | None = Field(default=None, max_length=100)
    author_email: EmailStr | None = None
    parent_id: uuid.UUID | None = None
    page_title: str | None = Field(default=None, max_length=500)
    page_url: str | None = Field(default=None, max_length=2000)


def _display_name(user: User) -> str:
    return user.display_name or user.email.split("@")[0]


def _comment_to_response(row: CommentRow, *, user_liked: bool) -> dict:
    return {
        "id": str(row.id),
        "author_name": row.user_display_name or row.author_name or "",
        "author_email_hash": row.user_email_hash or row.author_email_hash,
        "content": row.content,
        "parent_id": str(row.parent_id) if row.parent_id else None,
        "likes": row.like_count,
        "user_liked": user_liked,
        "created_at": row.created_at.isoformat(),
    }


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


# ===================================================================
# GET /sites/comments
# ===================================================================


@router.get("/comments")
async def list_comments(
    db: DbSession,
    user: OptionalUser,
    domain: Annotated[str, Query(min_length=1, max_length=255)],
    page_slug: Annotated[str, Query(alias="pageId", min_length=1, max_length=500)],
    title: Annotated[str | None, Query(max_length=500)] = None,
) -> DataResponse[dict]:
    """Approved comments of a page with like stats.

    A page that has no comments yet does not exist; the empty state is
    returned instead of 404.

    Raises:
        NotFoundError: 404 when no site owns the domain.
    """
    site = await SiteRepository.get_by_domain(db, domain.strip())
    if site is None:
        raise NotFoundError("Site")

    viewer_id = user.id if user else None
    page = await PageRepository.get_by_slug(db, site_id=site.id, slug=page_slug)
    if page is None:
        return DataResponse(
            data={
                "page_id": None,
                "slug": page_slug,
                "title": title,
                "comment_count": 0,
                "likes": 0,
                "user_liked": False,
                "comments": [],
            }
        )

    rows = await CommentRepository.list_approved(db, page.id)
    liked = await LikeRepository.liked_comment_ids(
        db, comment_ids=[row.id for row in rows], user_id=viewer_id
    )
    page_likes, page_liked = await LikeRepository.stats(
        db, PageLike, target_id=page.id, user_id=viewer_id
    )

    return DataResponse(
        data={
            "page_id": str(page.id),
            "slug": page_slug,
            "title": page.title,
            "comment_count": len(rows),
            "likes": page_likes,
            "user_liked": page_liked,
            "comments": [
                _comment_to_response(row, user_liked=row.id in liked) for row in rows
            ],
        }
    )


# ===================================================================
# POST /sites/comments
# ===================================================================


@router.post("/comments", status_code=status.HTTP_201_CREATED)
async def create_comment(
    request: Request,
    body: CreateCommentRequest,
    api_key: ApiKeyOrCsrf,
    db: DbSession,
    user: OptionalUser,
) -> DataResponse[dict]:
    """Create a comment on a page, creating the page on first use.

    Trust checks run before anything is written. Browser traffic must
    carry an X-Origin-Token whose domain equals ``body.domain``;
    server-to-server traffic instead presents the site's X-API-Key.

    Raises:
        InvalidTokenError: 403 for a missing/invalid/mismatching token.
        ForbiddenError: 403 for a wrong API key.
        NotFoundError: 404 when no site owns the domain.
        ValidationError: 400 for guests without author_name, empty
            sanitized content or a foreign parent comment.
    """
    if api_key is None:
        validate_origin_domain(request, body.domain)

    site = await SiteRepository.get_by_domain(db, body.domain.strip())
    if site is None:
        raise NotFoundError("Site")

    if api_key is not None and not hmac.compare_digest(
        api_key.encode("utf-8"), site.api_key.encode("utf-8")
    ):
        logger.warning("API key mismatch for site %s", site.id)
        raise ForbiddenError("Invalid API key")

    content = sanitize_comment_content(body.content)
    if not content:
        raise ValidationError("Comment content is empty after sanitization")

    if user is None:
        author_name = sanitize_comment_content(body.author_name or "")
        if not author_name:
            raise ValidationError("author_name is required for anonymous comments")
        author_email = str(body.author_email) if body.author_email else None
        effective_name = author_name
    else:
        author_name = None
        author_email = None
        effective_name = _display_name(user)

    page = await PageRepository.get_or_create(
        db,
        site_id=site.id,
        slug=body.page_id,
        title=body.page_title,
        url=body.page_url,
    )

    if body.parent_id is not None:
        parent = await CommentRepository.get_by_id(db, body.parent_id)
        if parent is None or parent.page_id != page.id:
            raise ValidationError("parent_id does not belong to this page")

    comment = await CommentRepository.create(
        db,
        site_id=site.id,
        page_id=page.id,
        user_id=user.id if user else None,
        author_name=author_name,
        author_email=author_email,
        author_email_hash=email_hash(author_email) if author_email else None,
        parent_id=body.parent_id,
        content=content,
        ip_address=_client_ip(request) if settings.collect_ip_address else None,
        user_agent=(
            request.headers.get("user-agent") if settings.collect_user_agent else None
        ),
    )
    await db.commit()

    return DataResponse(
        data={
            "id": str(comment.id),
            "author_name": effective_name,
            "author_email_hash": (
                user.email_hash if user else comment.author_email_hash
            ),
            "content": comment.content,
            "parent_id": str(comment.parent_id) if comment.parent_id else None,
            "status": comment.status,
            "likes": 0,
            "user_liked": False,
            "created_at": comment.created_at.isoformat(),
        }
    )
