"""Repository for Session operations.

Sessions are looked up by the SHA-256 of the presented bearer secret;
expiry is compared in SQL.
"""

import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from commentkit.models.session import Session
from commentkit.models.user import User


class SessionRepository:
    """Stateless repository for Session table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        token_hash: str,
        expires_at: datetime,
    ) -> Session:
        """Store a new session.

        Args:
            db: Async database session.
            user_id: Owning user.
            token_hash: SHA-256 hex of the raw bearer secret.
            expires_at: Session expiry.

        Returns:
            Created Session.
        """
        session = Session(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
        db.add(session)
        await db.flush()
        return session

    @staticmethod
    async def get_active_user(
        db: AsyncSession, *, token_hash: str, now: datetime
    ) -> User | None:
        """Resolve the user owning a non-expired session.

        Args:
            db: Async database session.
            token_hash: SHA-256 hex of the presented secret.
            now: Current time (UTC).

        Returns:
            User if an unexpired session matches, None otherwise.
        """
        stmt = (
            select(User)
            .join(Session, Session.user_id == User.id)
            .where(Session.token_hash == token_hash, Session.expires_at > now)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_by_hash(db: AsyncSession, token_hash: str) -> int:
        """Delete the session with this token hash.

        Args:
            db: Async database session.
            token_hash: SHA-256 hex of the raw bearer secret.

        Returns:
            Number of rows deleted (0 or 1).
        """
        stmt = delete(Session).where(Session.token_hash == token_hash)
        result = await db.execute(stmt)
        return result.rowcount

    @staticmethod
    async def delete_expired_for_user(
        db: AsyncSession, *, user_id: uuid.UUID, now: datetime
    ) -> int:
        """Purge one user's sessions whose expiry has passed.

        Args:
            db: Async database session.
            user_id: Owning user.
            now: Current time (UTC).

        Returns:
            Number of rows deleted.
        """
        stmt = (
            delete(Session)
            .where(Session.user_id == user_id, Session.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount
