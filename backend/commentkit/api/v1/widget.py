"""Widget bootstrap endpoints.

Endpoints:
- GET /widget/init — mint origin + CSRF tokens for the requesting site
- GET /widget/verify-site — public registered/verified status of a domain
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, Request

from commentkit.api.deps import DbSession
from commentkit.core.config import settings
from commentkit.core.csrf import issue_csrf_token
from commentkit.core.errors import (
    DomainNotRegisteredError,
    DomainNotVerifiedError,
    ForbiddenError,
)
from commentkit.core.origin_token import ORIGIN_TOKEN_TTL_MS, issue_origin_token
from commentkit.core.origin_trust import hostname_from_origin, normalize_origin
from commentkit.core.responses import DataResponse
from commentkit.repositories.site_repository import SiteRepository

logger = logging.getLogger(__name__)

router = APIRouter()

_NOT_REGISTERED_HINT = "This domain is not registered with CommentKit."
_NOT_VERIFIED_HINT = (
    "This site has not been verified. The site owner must verify domain "
    "ownership to enable comments."
)


def _resolve_origin(request: Request, fallback_domain: str | None) -> tuple[str, str]:
    """Determine (hostname, origin) the tokens will be bound to.

    The hostname comes from the browser-set Origin header. Only the
    development environment may fall back to the ``domain`` query
    parameter, which is a client claim and therefore a weaker guarantee.

    Raises:
        ForbiddenError: No usable Origin header outside development.
    """
    origin = normalize_origin(request.headers.get("origin"))
    hostname = hostname_from_origin(origin)
    if origin is not None and hostname is not None:
        return hostname, origin

    if settings.is_development and fallback_domain:
        domain = fallback_domain.strip().lower()
        logger.info("widget init without Origin; using domain parameter %s", domain)
        return domain, f"http://{domain}"

    raise ForbiddenError("Origin header required")


# ===================================================================
# GET /widget/init
# ===================================================================


@router.get("/init")
async def widget_init(
    request: Request,
    db: DbSession,
    domain: Annotated[str | None, Query(max_length=255)] = None,
) -> DataResponse[dict]:
    """Issue the widget's origin token and CSRF token.

    The domain bound into the origin token is parsed from the Origin
    header, never from a body or query field (except the development
    fallback). Tokens are not renewable; the widget calls this once per
    page load.

    Raises:
        DomainNotRegisteredError: 404 when no site owns the hostname.
        DomainNotVerifiedError: 403 when the site is unverified.
    """
    hostname, origin = _resolve_origin(request, domain)

    site = await SiteRepository.get_by_domain(db, hostname)
    if site is None:
        raise DomainNotRegisteredError()
    if not site.verified:
        raise DomainNotVerifiedError()

    secret = settings.auth_secret.get_secret_value()
    origin_token = issue_origin_token(hostname, secret)
    csrf_token = issue_csrf_token(origin, secret)

    return DataResponse(
        data={
            "token": origin_token.encode(),
            "csrfToken": csrf_token.encode(),
            "domain": hostname,
            "site_id": str(site.id),
            "verified": True,
            "expires_in": ORIGIN_TOKEN_TTL_MS // 1000,
        }
    )


# ===================================================================
# GET /widget/verify-site
# ===================================================================


@router.get("/verify-site")
async def verify_site(
    db: DbSession,
    domain: Annotated[str, Query(min_length=1, max_length=255)],
) -> DataResponse[dict]:
    """Report whether a domain is registered and verified.

    Public. Returns only status, never key material.
    """
    site = await SiteRepository.get_by_domain(db, domain.strip())
    if site is None:
        return DataResponse(data={"verified": False, "error": _NOT_REGISTERED_HINT})
    if not site.verified:
        return DataResponse(data={"verified": False, "error": _NOT_VERIFIED_HINT})
    return DataResponse(data={"verified": True, "site_id": str(site.id)})
