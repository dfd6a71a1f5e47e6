"""Email sending via Resend API.

Simple HTTP POST to Resend for magic link emails, plain-text body. Without
an API key configured the link is logged instead, in development only;
any other environment refuses to send rather than leak the token.
"""

import logging
from urllib.parse import quote, urlencode

import httpx

from commentkit.core.config import settings
from commentkit.core.errors import EmailDeliveryError

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


def build_magic_link_url(token: str, redirect_url: str | None = None) -> str:
    """Link the user clicks: the frontend, which forwards the token to /auth/verify."""
    params = {"token": token}
    if redirect_url:
        params["redirect"] = redirect_url
    return f"{settings.frontend_url}?{urlencode(params, quote_via=quote)}"


async def send_magic_link_email(
    *, to_email: str, token: str, redirect_url: str | None = None
) -> None:
    """Send a magic link sign-in email via Resend.

    Args:
        to_email: Recipient email address.
        token: Plain magic link token.
        redirect_url: Where the frontend should land after sign-in.

    Raises:
        EmailDeliveryError: If Resend rejects the request or is unreachable.
            Delivery is not retried. Also raised outside development
            when no API key is configured.
    """
    link = build_magic_link_url(token, redirect_url)

    api_key = settings.resend_api_key.get_secret_value()
    if not api_key:
        if not settings.is_development:
            logger.error("RESEND_API_KEY is not configured; magic link not sent")
            raise EmailDeliveryError()
        logger.info("No email provider configured; magic link: %s", link)
        return

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": "Sign in to CommentKit",
                    "text": (
                        f"Click this link to sign in:\n\n{link}\n\n"
                        "This link expires in 15 minutes. "
                        "If you didn't request this, you can safely ignore this email."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Failed to send magic link email", exc_info=True)
        raise EmailDeliveryError() from exc
