"""Rate limiting configuration using slowapi.

Limits the unauthenticated auth endpoints (magic link request and
redemption), which are the ones that send email or probe tokens. Requests
carrying a session credential are keyed by its hash so visitors behind one
NAT do not share a bucket.

Usage in routers:
    from commentkit.core.rate_limiting import limiter

    @router.post("/login")
    @limiter.limit(lambda: settings.rate_limit_login)
    async def login(request: Request, ...):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from commentkit.core.auth import extract_session_secret, hash_secret
from commentkit.core.config import settings


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - Session credential present: "session:{first 16 hex of its hash}"
    - Otherwise: "ip:{remote address}"

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    secret = extract_session_secret(request)
    if secret:
        return f"session:{hash_secret(secret)[:16]}"
    return f"ip:{get_remote_address(request)}"


# In-memory storage: fine for a single instance. For several instances
# configure shared storage via RATELIMIT_STORAGE_URL.
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Returns 429 Too Many Requests with the standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    # exc.detail looks like "5 per 1 minute"; fall back to 60 seconds
    try:
        retry_after = str(exc.detail.split()[-1])
        int(retry_after.rstrip("s"))
    except (ValueError, AttributeError, IndexError):
        retry_after = "60"

    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMITED",
                "message": f"Rate limit exceeded: {exc.detail}",
            }
        },
        headers={"Retry-After": retry_after},
    )
