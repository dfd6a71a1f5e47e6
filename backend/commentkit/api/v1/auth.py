"""Magic link + session endpoints.

Endpoints:
- POST /auth/login — email a magic link
- GET /auth/verify — redeem a magic link, open a session
- GET /auth/me — current user (optionally with dashboard bootstrap data)
- PATCH /auth/profile — update display name
- POST /auth/logout — end the session, clear the cookie
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, Request, Response
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, EmailStr, Field

from commentkit.api.deps import CsrfProtected, CurrentUser, DbSession
from commentkit.core.auth import clear_auth_cookie, set_auth_cookie
from commentkit.core.config import settings
from commentkit.core.errors import InvalidMagicLinkError, ValidationError
from commentkit.core.rate_limiting import limiter
from commentkit.core.responses import DataResponse
from commentkit.models.user import User
from commentkit.repositories.site_repository import SiteRepository
from commentkit.repositories.user_repository import UserRepository
from commentkit.services import magic_link_service
from commentkit.services.magic_link_service import MagicLinkRedemptionError

logger = logging.getLogger(__name__)

router = APIRouter()


# ===================================================================
# Request models
# ===================================================================


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    redirect_url: AnyHttpUrl | None = None


class UpdateProfileRequest(BaseModel):
    """Request body for PATCH /auth/profile."""

    model_config = ConfigDict(extra="forbid")

    display_name: str = Field(min_length=1, max_length=100)


def _user_to_response(user: User) -> dict:
    """Build standard user response payload for /verify, /me and /profile."""
    return {
        "id": str(user.id),
        "email": user.email,
        "email_hash": user.email_hash,
        "display_name": user.display_name,
        "is_superadmin": user.is_superadmin,
        "created_at": user.created_at.isoformat(),
        "updated_at": user.updated_at.isoformat(),
    }


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login")
@limiter.limit(lambda: settings.rate_limit_login)
async def login(
    request: Request,  # noqa: ARG001
    body: LoginRequest,
    db: DbSession,
) -> DataResponse[dict]:
    """Send a magic link to the given email.

    The link is valid for 15 minutes and can be used once. Delivery
    failure is reported (500), not retried.
    """
    redirect_url = str(body.redirect_url) if body.redirect_url else None
    await magic_link_service.request_login(db, body.email, redirect_url)
    return DataResponse(data={"message": "Magic link sent! Check your email."})


# ===================================================================
# GET /auth/verify
# ===================================================================


@router.get("/verify")
@limiter.limit(lambda: settings.rate_limit_verify)
async def verify(
    request: Request,  # noqa: ARG001
    response: Response,
    db: DbSession,
    token: Annotated[str | None, Query(max_length=256)] = None,
) -> DataResponse[dict]:
    """Redeem a magic link and open a 30-day session.

    The raw session secret is returned once, both in the body (for bearer
    use) and as the HttpOnly ck_auth cookie.

    Raises:
        InvalidMagicLinkError: 400 for a missing, unknown, used or expired
            token (not distinguished to the client).
    """
    if not token:
        raise InvalidMagicLinkError("Missing token")

    try:
        issued = await magic_link_service.redeem(db, token)
    except MagicLinkRedemptionError as exc:
        raise InvalidMagicLinkError() from exc

    await db.commit()
    await db.refresh(issued.user)

    set_auth_cookie(response, issued.raw_secret)
    # Prevent token leakage via Referer header
    response.headers["Referrer-Policy"] = "no-referrer"

    return DataResponse(
        data={"token": issued.raw_secret, "user": _user_to_response(issued.user)}
    )


# ===================================================================
# GET /auth/me
# ===================================================================


@router.get("/me")
async def get_me(
    user: CurrentUser,
    db: DbSession,
    bootstrap: bool = False,
) -> DataResponse[dict]:
    """Return the signed-in user.

    ``bootstrap=true`` adds the user's sites so the dashboard can render
    without a second request.
    """
    data = _user_to_response(user)
    if bootstrap:
        sites = await SiteRepository.list_by_owner(db, user.id)
        data["bootstrap"] = {
            "sites": [
                {
                    "id": str(site.id),
                    "name": site.name,
                    "domain": site.domain,
                    "verified": site.verified,
                    "api_key_preview": f"{site.api_key[:8]}...",
                }
                for site in sites
            ]
        }
    return DataResponse(data=data)


# ===================================================================
# PATCH /auth/profile
# ===================================================================


@router.patch("/profile")
async def update_profile(
    body: UpdateProfileRequest,
    user: CurrentUser,
    _csrf: CsrfProtected,
    db: DbSession,
) -> DataResponse[dict]:
    """Update the display name shown next to comments."""
    display_name = body.display_name.strip()
    if not display_name:
        raise ValidationError("Display name must not be empty")

    updated = await UserRepository.update_display_name(db, user, display_name)
    await db.commit()
    return DataResponse(data=_user_to_response(updated))


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    db: DbSession,
) -> DataResponse[dict]:
    """Delete the presented session and clear the cookie.

    No auth required and always 200, even without a session.
    """
    await magic_link_service.logout(db, request)
    await db.commit()
    clear_auth_cookie(response)
    return DataResponse(data={"message": "Logged out successfully"})
