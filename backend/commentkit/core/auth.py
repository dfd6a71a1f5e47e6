"""Session credential helpers.

Pipeline:
- generate_secret / hash_secret: raw bearer secret and its stored SHA-256
- set_auth_cookie / clear_auth_cookie: the ck_auth cookie contract
- extract_session_secret: cookie first, then Authorization: Bearer
"""

import hashlib
import secrets
from datetime import timedelta

from fastapi import Request, Response

from commentkit.core.config import settings

SESSION_TTL = timedelta(days=30)
MAGIC_LINK_TTL = timedelta(minutes=15)

_SECRET_BYTES = 32
_BEARER_PREFIX = "bearer "


def generate_secret() -> str:
    """Return 32 random bytes as 64 hex chars."""
    return secrets.token_hex(_SECRET_BYTES)


def hash_secret(raw: str) -> str:
    """SHA-256 hex digest of a raw bearer secret.

    Only the digest is persisted; a database leak does not yield usable
    session credentials.
    """
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def set_auth_cookie(response: Response, raw_secret: str) -> None:
    """Set the HttpOnly session cookie.

    Production uses Secure + SameSite=None because the cookie has to be
    sent from the cross-origin widget iframe; development uses Lax.

    Args:
        response: Outgoing response.
        raw_secret: Raw session bearer secret.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=raw_secret,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=int(SESSION_TTL.total_seconds()),
    )


def clear_auth_cookie(response: Response) -> None:
    """Expire the session cookie (Max-Age=0, same attributes)."""
    response.set_cookie(
        key=settings.auth_cookie_name,
        value="",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=0,
    )


def extract_session_secret(request: Request) -> str | None:
    """Find the raw session secret on a request.

    The cookie wins over the Authorization header when both are present.

    Args:
        request: Incoming request.

    Returns:
        Raw secret, or None when neither source carries one.
    """
    cookie = request.cookies.get(settings.auth_cookie_name)
    if cookie:
        return cookie

    header = request.headers.get("authorization", "")
    if header.lower().startswith(_BEARER_PREFIX):
        token = header[len(_BEARER_PREFIX) :].strip()
        return token or None
    return None
