"""ASGI middleware for origin-aware CORS.

Starlette's CORSMiddleware only knows a fixed origin list. Customer sites
become trusted when their domain is verified, so the decision is made per
request by the origin trust resolver (static allow-list, then the site
registry).

Behavior:
- Allowed origin: the exact Origin is echoed in Access-Control-Allow-Origin
  with credentials enabled (never "*", the widget sends cookies).
- Denied origin: the request proceeds but no CORS headers are added; the
  browser enforces the block.
- Preflight (OPTIONS + Access-Control-Request-Method): answered here with
  204 and never reaches the routes.

This is a raw ASGI middleware (not BaseHTTPMiddleware) so preflights can be
short-circuited and response headers patched on http.response.start.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from commentkit.core import database
from commentkit.core.origin_trust import SiteLookup, is_origin_allowed
from commentkit.repositories.site_repository import SiteRepository

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
ALLOWED_HEADERS = (
    "Content-Type",
    "Authorization",
    "X-API-Key",
    "X-CSRF-Token",
    "X-Origin-Token",
)
PREFLIGHT_MAX_AGE = 86400

# Scope key recording the origin this middleware accepted
_ALLOWED_ORIGIN_SCOPE_KEY = "commentkit.cors_allowed_origin"


async def verified_site_lookup(hostname: str) -> bool:
    """Default site lookup: query the registry in a short-lived session.

    Database failures deny the origin rather than failing the request.

    Args:
        hostname: Origin hostname.

    Returns:
        True if a verified site owns the hostname.
    """
    try:
        async with database.async_session_factory() as db:
            return await SiteRepository.is_verified_domain(db, hostname)
    except SQLAlchemyError:
        logger.warning("Site lookup failed for CORS check", exc_info=True)
        return False


def cors_headers_for_scope(scope: Scope) -> dict[str, str]:
    """CORS headers for a response sent outside DynamicCORSMiddleware.

    The catch-all exception handler runs in Starlette's ServerErrorMiddleware,
    which wraps every user middleware, so its 500 response never passes
    through the send wrapper below.

    Args:
        scope: ASGI connection scope the middleware has seen.

    Returns:
        The allowed-origin headers, or an empty dict for denied or
        cross-origin-free requests.
    """
    origin = scope.get(_ALLOWED_ORIGIN_SCOPE_KEY)
    if origin is None:
        return {}
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Credentials": "true",
        "Vary": "Origin",
    }


class DynamicCORSMiddleware:
    """Emit CORS headers for origins the trust resolver accepts."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        static_allow_list: list[str],
        development: bool,
        site_lookup: SiteLookup = verified_site_lookup,
    ) -> None:
        """Initialize with the next ASGI application.

        Args:
            app: The next ASGI application in the middleware chain.
            static_allow_list: Normalized statically trusted origins.
            development: Whether localhost-family origins are trusted.
            site_lookup: Async "is this hostname a verified site" predicate.
        """
        self.app = app
        self.static_allow_list = static_allow_list
        self.development = development
        self.site_lookup = site_lookup

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Apply the CORS decision to one HTTP exchange.

        Args:
            scope: ASGI connection scope.
            receive: ASGI receive callable.
            send: ASGI send callable.
        """
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        origin = headers.get("origin")
        if origin is None:
            await self.app(scope, receive, send)
            return

        allowed = await is_origin_allowed(
            origin,
            self.static_allow_list,
            development=self.development,
            site_lookup=self.site_lookup,
        )

        if scope["method"] == "OPTIONS" and "access-control-request-method" in headers:
            response = self._preflight_response(origin, allowed)
            await response(scope, receive, send)
            return

        if not allowed:
            logger.debug("CORS denied for origin %s", origin)
            await self.app(scope, receive, send)
            return

        scope[_ALLOWED_ORIGIN_SCOPE_KEY] = origin

        async def send_with_cors(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                response_headers = MutableHeaders(scope=message)
                response_headers["Access-Control-Allow-Origin"] = origin
                response_headers["Access-Control-Allow-Credentials"] = "true"
                response_headers.add_vary_header("Origin")
            await send(message)

        await self.app(scope, receive, send_with_cors)

    @staticmethod
    def _preflight_response(origin: str, allowed: bool) -> Response:
        """Build the 204 preflight answer.

        Args:
            origin: Request Origin.
            allowed: Trust decision for that origin.

        Returns:
            204 with CORS headers when allowed, bare 204 otherwise.
        """
        headers = {"Vary": "Origin"}
        if allowed:
            headers.update(
                {
                    "Access-Control-Allow-Origin": origin,
                    "Access-Control-Allow-Credentials": "true",
                    "Access-Control-Allow-Methods": ", ".join(ALLOWED_METHODS),
                    "Access-Control-Allow-Headers": ", ".join(ALLOWED_HEADERS),
                    "Access-Control-Max-Age": str(PREFLIGHT_MAX_AGE),
                }
            )
        return Response(status_code=204, headers=headers)
