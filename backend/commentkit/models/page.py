"""Page model - one comment thread per (site, slug)."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from commentkit.models.base import Base, UUIDPrimaryKeyMixin


class Page(Base, UUIDPrimaryKeyMixin):
    """A page on a site that carries a comment thread.

    Created on the first comment posted for its slug.

    Attributes:
        id: UUID primary key.
        site_id: Owning site.
        slug: Host-page identifier chosen by the embed (path by default).
        title: Page title captured from the host page.
        url: Page URL captured from the host page.
        created_at: Creation timestamp.
    """

    __tablename__ = "pages"
    __table_args__ = (UniqueConstraint("site_id", "slug", name="uq_pages_site_slug"),)

    site_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("sites.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    slug: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )
    url: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
