"""Passwordless login: magic links and sessions.

Per login attempt: Requested -> (awaiting click) -> Verified -> Session.

- request_login: persist a 15-minute single-use link and email it
- redeem: consume the link, resolve or create the user, mint a 30-day
  session (raw bearer secret returned once, only its hash stored)
- authenticate: resolve the user behind a request's cookie or bearer
  header; returns None instead of raising
- logout: delete the presented session(s); always succeeds
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from commentkit.core.auth import (
    MAGIC_LINK_TTL,
    SESSION_TTL,
    generate_secret,
    hash_secret,
)
from commentkit.core.config import settings
from commentkit.core.email import send_magic_link_email
from commentkit.models.base import as_utc
from commentkit.models.magic_link import MagicLink
from commentkit.models.session import Session
from commentkit.models.user import User
from commentkit.repositories.magic_link_repository import MagicLinkRepository
from commentkit.repositories.session_repository import SessionRepository
from commentkit.repositories.user_repository import UserRepository, normalize_email

logger = logging.getLogger(__name__)


class AuthError(str, Enum):
    """Why a magic link could not be redeemed."""

    TOKEN_NOT_FOUND = "token_not_found"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"


class MagicLinkRedemptionError(Exception):
    """Raised by redeem(); reason is an AuthError."""

    def __init__(self, reason: AuthError) -> None:
        self.reason = reason
        super().__init__(reason.value)


@dataclass(frozen=True)
class IssuedSession:
    """Result of a successful redemption.

    Attributes:
        user: Resolved or newly created user.
        session: Stored session row (hash only).
        raw_secret: Bearer secret for the response. Never persisted.
    """

    user: User
    session: Session
    raw_secret: str


def _now() -> datetime:
    return datetime.now(UTC)


# ===================================================================
# Login request
# ===================================================================


async def request_login(
    db: AsyncSession,
    email: str,
    redirect_url: str | None = None,
    *,
    now: datetime | None = None,
) -> MagicLink:
    """Issue a magic link and email it.

    The link is committed before the email goes out so a slow provider
    cannot leave the user holding a link the database never saw.

    Args:
        db: Async database session.
        email: Recipient (validated by the caller).
        redirect_url: Optional post-login destination carried in the link.
        now: Current time; defaults to now.

    Returns:
        The stored MagicLink.

    Raises:
        EmailDeliveryError: If sending fails. Not retried.
    """
    issued = now or _now()
    link = await MagicLinkRepository.create(
        db,
        email=normalize_email(email),
        token=generate_secret(),
        expires_at=issued + MAGIC_LINK_TTL,
    )
    await db.commit()

    await send_magic_link_email(
        to_email=link.email, token=link.token, redirect_url=redirect_url
    )
    return link


# ===================================================================
# Redemption
# ===================================================================


async def _classify_failure(
    db: AsyncSession, token: str, now: datetime
) -> AuthError:
    link = await MagicLinkRepository.get_by_token(db, token)
    if link is None:
        return AuthError.TOKEN_NOT_FOUND
    if link.used:
        return AuthError.ALREADY_USED
    if as_utc(link.expires_at) <= now:
        return AuthError.EXPIRED
    # Consumed by a concurrent redemption between our UPDATE and this read
    return AuthError.ALREADY_USED


async def redeem(
    db: AsyncSession, token: str, *, now: datetime | None = None
) -> IssuedSession:
    """Redeem a magic link for a new session.

    The user's expired sessions are purged before the new one is stored.

    Args:
        db: Async database session.
        token: Token from the emailed link.
        now: Current time; defaults to now.

    Returns:
        IssuedSession with the raw bearer secret.

    Raises:
        MagicLinkRedemptionError: Token unknown, already used or expired.
    """
    at = now or _now()

    email = await MagicLinkRepository.consume(db, token=token, now=at)
    if email is None:
        reason = await _classify_failure(db, token, at)
        logger.info("Magic link redemption refused: %s", reason.value)
        raise MagicLinkRedemptionError(reason)

    user = await UserRepository.get_or_create(db, email)
    await SessionRepository.delete_expired_for_user(db, user_id=user.id, now=at)

    raw_secret = generate_secret()
    session = await SessionRepository.create(
        db,
        user_id=user.id,
        token_hash=hash_secret(raw_secret),
        expires_at=at + SESSION_TTL,
    )
    return IssuedSession(user=user, session=session, raw_secret=raw_secret)


# ===================================================================
# Request authentication
# ===================================================================


def _presented_secrets(request: Request) -> list[str]:
    """Every session secret on the request, cookie first."""
    found: list[str] = []
    cookie = request.cookies.get(settings.auth_cookie_name)
    if cookie:
        found.append(cookie)
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip() and value.strip() not in found:
        found.append(value.strip())
    return found


async def authenticate(
    db: AsyncSession, request: Request, *, now: datetime | None = None
) -> User | None:
    """Resolve the signed-in user for a request.

    Looks at the ck_auth cookie, then the Authorization: Bearer header.
    The first credential that maps to an unexpired session wins.

    Args:
        db: Async database session.
        request: Incoming request.
        now: Current time; defaults to now.

    Returns:
        The User, or None for anonymous / invalid / expired credentials.
    """
    at = now or _now()
    for secret in _presented_secrets(request):
        user = await SessionRepository.get_active_user(
            db, token_hash=hash_secret(secret), now=at
        )
        if user is not None:
            return user
    return None


async def logout(db: AsyncSession, request: Request) -> None:
    """Delete the session(s) behind whatever credentials were presented.

    Idempotent: no credential or an unknown one is not an error.

    Args:
        db: Async database session.
        request: Incoming request.
    """
    for secret in _presented_secrets(request):
        await SessionRepository.delete_by_hash(db, hash_secret(secret))
