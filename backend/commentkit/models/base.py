"""SQLAlchemy base classes and common mixins.

Defines the declarative base, the UUID primary key used by every table and
the created/updated timestamp mixin.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
        uuid.UUID: Uuid(),
    }


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime read back from the database.

    PostgreSQL returns aware values; SQLite (used in tests) drops the
    offset. All stored timestamps are UTC, so either form is safe to
    compare after this call.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class UUIDPrimaryKeyMixin:
    """Mixin for a client-generated UUID primary key.

    Attributes:
        id: UUID primary key.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )


class TimestampMixin:
    """Mixin that adds created_at and updated_at columns.

    Attributes:
        created_at: Timestamp when the record was created. Set automatically
            by the database on insert.
        updated_at: Timestamp when the record was last modified. Updated
            automatically by the database on each update.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
