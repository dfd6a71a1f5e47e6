"""Repository for Site lookups used by the trust boundary."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from commentkit.models.site import Site


class SiteRepository:
    """Stateless repository for Site table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def get_by_domain(db: AsyncSession, domain: str) -> Site | None:
        """Fetch a site by its hostname.

        Args:
            db: Async database session.
            domain: Hostname (compared lower-cased).

        Returns:
            Site if registered, None otherwise.
        """
        stmt = select(Site).where(Site.domain == domain.lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def is_verified_domain(db: AsyncSession, domain: str) -> bool:
        """Whether a verified site owns this hostname.

        Args:
            db: Async database session.
            domain: Hostname.

        Returns:
            True only for a registered and verified site.
        """
        stmt = select(Site.id).where(
            Site.domain == domain.lower(), Site.verified.is_(True)
        )
        result = await db.execute(stmt)
        return result.first() is not None

    @staticmethod
    async def list_by_owner(db: AsyncSession, owner_id: uuid.UUID) -> list[Site]:
        """Sites owned by a user, newest first.

        Args:
            db: Async database session.
            owner_id: Owning user.

        Returns:
            List of Sites (possibly empty).
        """
        stmt = (
            select(Site)
            .where(Site.owner_id == owner_id)
            .order_by(Site.created_at.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())
