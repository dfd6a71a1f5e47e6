"""Repository for MagicLink operations.

Single-use is enforced by consume(): one conditional UPDATE that only
matches an unused, unexpired row. Two concurrent redemptions of the same
token race on that statement and exactly one gets a row back.
"""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from commentkit.models.magic_link import MagicLink


class MagicLinkRepository:
    """Stateless repository for MagicLink table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        token: str,
        expires_at: datetime,
    ) -> MagicLink:
        """Store a new magic link.

        Args:
            db: Async database session.
            email: Normalized recipient email.
            token: Plain token (64 hex chars).
            expires_at: Link expiry.

        Returns:
            Created MagicLink.
        """
        link = MagicLink(email=email, token=token, expires_at=expires_at, used=False)
        db.add(link)
        await db.flush()
        return link

    @staticmethod
    async def get_by_token(db: AsyncSession, token: str) -> MagicLink | None:
        """Look up a link regardless of state.

        Args:
            db: Async database session.
            token: Plain token.

        Returns:
            MagicLink if found, None otherwise.
        """
        stmt = (
            select(MagicLink)
            .where(MagicLink.token == token)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def consume(db: AsyncSession, *, token: str, now: datetime) -> str | None:
        """Atomically mark a link used if it is still redeemable.

        Args:
            db: Async database session.
            token: Plain token.
            now: Current time (UTC).

        Returns:
            The link's email on success, None if no unused unexpired link
            matched.
        """
        stmt = (
            update(MagicLink)
            .where(
                MagicLink.token == token,
                MagicLink.used.is_(False),
                MagicLink.expires_at > now,
            )
            .values(used=True)
            .returning(MagicLink.email)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
