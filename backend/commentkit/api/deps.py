"""Shared dependencies for API endpoints.

Authentication, CSRF and origin-token checks live here so every route
enforces them the same way.

WHY DEPENDENCY INJECTION:
- Consistent auth and CSRF across all endpoints
- Testable with overridden dependencies
"""

import logging
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from commentkit.core.config import settings
from commentkit.core.csrf import is_bridge_origin, validate_csrf_token
from commentkit.core.database import get_db
from commentkit.core.errors import InvalidTokenError, UnauthorizedError
from commentkit.core.origin_token import verify_origin_token
from commentkit.core.signing import TokenRejectedError
from commentkit.models.user import User
from commentkit.services import magic_link_service

logger = logging.getLogger(__name__)

CSRF_HEADER = "x-csrf-token"
ORIGIN_TOKEN_HEADER = "x-origin-token"
API_KEY_HEADER = "x-api-key"

_CSRF_MESSAGE = "Invalid or expired CSRF token. Please refresh the page."


# ===================================================================
# Authentication
# ===================================================================


async def get_optional_user(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User | None:
    """Resolve the signed-in user, or None for anonymous callers.

    Args:
        request: HTTP request (injected by FastAPI).
        db: Database session (injected).

    Returns:
        User behind the ck_auth cookie or bearer header, else None.
    """
    return await magic_link_service.authenticate(db, request)


async def get_current_user(
    user: Annotated[User | None, Depends(get_optional_user)],
) -> User:
    """Require a signed-in user.

    Raises:
        UnauthorizedError: 401 when no valid session credential was sent.
    """
    if user is None:
        raise UnauthorizedError()
    return user


# ===================================================================
# CSRF (double-submit)
# ===================================================================


def check_csrf(request: Request) -> None:
    """Validate X-CSRF-Token against the request Origin.

    Skipped in development. The widget's own iframe bridge origins (API
    base, frontend and widget URLs, exact match) only need the header present;
    their writes are bound by the origin token instead.

    Raises:
        InvalidTokenError: 403 with a generic message; the precise reason
            is logged only.
    """
    if settings.is_development:
        return

    origin = request.headers.get("origin")
    token = request.headers.get(CSRF_HEADER)
    if not origin or not token:
        logger.warning("CSRF check failed: origin or token header missing")
        raise InvalidTokenError(_CSRF_MESSAGE)

    if is_bridge_origin(origin, settings.bridge_origins):
        return

    try:
        validate_csrf_token(token, origin, settings.auth_secret.get_secret_value())
    except TokenRejectedError as exc:
        logger.warning(
            "CSRF token rejected: %s (origin=%s)", exc.reason.value, origin
        )
        raise InvalidTokenError(_CSRF_MESSAGE) from exc


def require_csrf(request: Request) -> None:
    """Dependency for mutating routes. X-API-Key is ignored here."""
    check_csrf(request)


def require_csrf_or_api_key(request: Request) -> str | None:
    """Dependency for API-key-eligible mutating routes.

    A request carrying X-API-Key skips CSRF; the route must then match the
    key against the target site before writing anything.

    Returns:
        The presented API key, or None when CSRF was enforced instead.
    """
    api_key = request.headers.get(API_KEY_HEADER)
    if api_key:
        return api_key
    check_csrf(request)
    return None


# ===================================================================
# Origin token (domain claims)
# ===================================================================


def validate_origin_domain(request: Request, claimed_domain: str) -> None:
    """Check that a body's domain claim matches the X-Origin-Token.

    The origin token was minted from a browser-set Origin header, so its
    domain is the only trustworthy statement of where the widget runs.
    Development accepts a missing header but still verifies one that is
    present.

    Args:
        request: Incoming request.
        claimed_domain: ``domain`` field from the request body.

    Raises:
        InvalidTokenError: 403 for a missing, invalid, expired or
            mismatching token.
    """
    token = request.headers.get(ORIGIN_TOKEN_HEADER)
    if not token:
        if settings.is_development:
            return
        logger.warning("Origin token missing for domain claim %s", claimed_domain)
        raise InvalidTokenError(
            "X-Origin-Token header required. Call /widget/init first."
        )

    try:
        proven_domain = verify_origin_token(
            token, settings.auth_secret.get_secret_value()
        )
    except TokenRejectedError as exc:
        logger.warning("Origin token rejected: %s", exc.reason.value)
        raise InvalidTokenError() from exc

    if proven_domain.lower() != claimed_domain.strip().lower():
        logger.warning(
            "Origin token domain mismatch: token=%s claimed=%s",
            proven_domain,
            claimed_domain,
        )
        raise InvalidTokenError()


# Reusable type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
CurrentUser = Annotated[User, Depends(get_current_user)]
CsrfProtected = Annotated[None, Depends(require_csrf)]
ApiKeyOrCsrf = Annotated[str | None, Depends(require_csrf_or_api_key)]
