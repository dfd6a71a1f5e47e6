"""Repository for User operations.

Users are keyed by lower-cased email and created lazily on first login.
"""

import hashlib
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from commentkit.models.user import User


def normalize_email(email: str) -> str:
    """Trim and lower-case an email address."""
    return email.strip().lower()


def email_hash(email: str) -> str:
    """MD5 hex of the normalized email (Gravatar convention, not a secret)."""
    return hashlib.md5(  # nosec B324
        normalize_email(email).encode("utf-8"), usedforsecurity=False
    ).hexdigest()


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: User UUID.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        Args:
            db: Async database session.
            email: Email address in any case.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == normalize_email(email))
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create(db: AsyncSession, email: str) -> User:
        """Resolve the user for an email, creating it on first sight.

        A concurrent redemption for the same new email may win the insert;
        the unique constraint rejects ours and the winner's row is returned.

        Args:
            db: Async database session.
            email: Email address in any case.

        Returns:
            Existing or newly created User.
        """
        normalized = normalize_email(email)
        existing = await UserRepository.get_by_email(db, normalized)
        if existing is not None:
            return existing

        user = User(email=normalized, email_hash=email_hash(normalized))
        try:
            async with db.begin_nested():
                db.add(user)
        except IntegrityError:
            winner = await UserRepository.get_by_email(db, normalized)
            if winner is None:
                raise
            return winner
        await db.refresh(user)
        return user

    @staticmethod
    async def update_display_name(
        db: AsyncSession, user: User, display_name: str
    ) -> User:
        """Set the user's display name.

        Args:
            db: Async database session.
            user: User to update.
            display_name: New display name (already validated).

        Returns:
            Updated User.
        """
        user.display_name = display_name
        await db.flush()
        await db.refresh(user)
        return user
