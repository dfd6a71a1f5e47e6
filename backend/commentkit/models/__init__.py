"""SQLAlchemy ORM models for CommentKit.

All models are exported from this module for convenient imports:
    from commentkit.models import User, Site, Comment, ...

Models are organized by domain:
- user.py: User
- session.py: Session (hashed bearer credentials)
- magic_link.py: MagicLink (single-use login tokens)
- site.py: Site (registered domains)
- page.py: Page
- comment.py: Comment
- like.py: PageLike, CommentLike
"""

from commentkit.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from commentkit.models.comment import COMMENT_STATUSES, Comment
from commentkit.models.like import CommentLike, PageLike
from commentkit.models.magic_link import MagicLink
from commentkit.models.page import Page
from commentkit.models.session import Session
from commentkit.models.site import Site
from commentkit.models.user import User

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    # Auth
    "MagicLink",
    "Session",
    "User",
    # Sites and threads
    "COMMENT_STATUSES",
    "Comment",
    "CommentLike",
    "Page",
    "PageLike",
    "Site",
]
