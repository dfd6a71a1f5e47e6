"""FastAPI application entry point.

This module creates and configures the FastAPI application, including:
- Exception handlers for API errors
- Origin-aware CORS and security headers
- API v1 router mounting
- Health check endpoint
"""

import logging

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from commentkit.api.v1.router import router as v1_router
from commentkit.core.config import settings
from commentkit.core.cors import (
    DynamicCORSMiddleware,
    cors_headers_for_scope,
    verified_site_lookup,
)
from commentkit.core.errors import APIError
from commentkit.core.origin_trust import SiteLookup, build_static_allow_list
from commentkit.core.rate_limiting import limiter, rate_limit_exceeded_handler
from commentkit.core.responses import ErrorDetail, ErrorResponse

logger = structlog.get_logger()


def configure_logging() -> None:
    """Apply LOG_LEVEL to stdlib logging and structlog."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    Headers added:
    - X-Content-Type-Options: Prevents MIME sniffing
    - Referrer-Policy: Controls referrer information leakage
    - Permissions-Policy: Disables powerful browser features
    - Cache-Control: Prevents caching of API responses
    - Content-Security-Policy: No resource loading; any site may frame
    - Cross-Origin-Resource-Policy: cross-origin (widget fetches from host pages)
    - Strict-Transport-Security: Forces HTTPS (production only)

    No X-Frame-Options: the widget iframe is embedded by arbitrary sites.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Add security headers to response."""
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers.setdefault(
            "Referrer-Policy", "strict-origin-when-cross-origin"
        )
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=()"
        )

        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"

        # frame-ancestors *: customer pages embed the widget iframe
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors *"
        )
        response.headers["Cross-Origin-Resource-Policy"] = "cross-origin"

        # HSTS only in production (assumes HTTPS via reverse proxy)
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors.

    Args:
        request: The incoming request.
        exc: The APIError that was raised.

    Returns:
        JSONResponse with error envelope and appropriate status code.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details=exc.details,
            )
        ).model_dump(),
    )


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors from FastAPI.

    Converts FastAPI's 422 validation errors to a 400 in our format.

    Args:
        request: The incoming request.
        exc: The RequestValidationError from Pydantic.

    Returns:
        JSONResponse with VALIDATION_ERROR code and field-level details.
    """
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="VALIDATION_ERROR",
                message="Request validation failed",
                details=[
                    {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                    for e in exc.errors()
                ],
            )
        ).model_dump(),
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions.

    Returns 500 INTERNAL_ERROR without exposing stack traces. Carries the
    CORS headers the origin earned so the widget can read the envelope.

    Args:
        request: The incoming request.
        exc: The unhandled exception.

    Returns:
        JSONResponse with generic error message (500).
    """
    logger.exception("Unhandled exception", exc_info=exc, path=str(request.url.path))

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="INTERNAL_ERROR",
                message="An unexpected error occurred",
            )
        ).model_dump(),
        headers=cors_headers_for_scope(request.scope),
    )


def create_app(site_lookup: SiteLookup | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    WHY FACTORY FUNCTION:
    - Enables testing with different configurations
    - Lets tests inject the site registry lookup used by CORS

    Args:
        site_lookup: Async "is this hostname a verified site" predicate.
            Defaults to a query against the configured database.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="CommentKit API",
        version="1.0.0",
        description="Embeddable comments: cross-origin trust and authentication",
    )

    if settings.is_development:
        logger.warning(
            "Development mode: CSRF and origin-token checks are relaxed",
            environment=settings.environment,
        )

    # Middleware order: Starlette uses LIFO, so the LAST added runs FIRST.
    # CORS must run first to answer preflight requests, so add it last.
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        DynamicCORSMiddleware,
        static_allow_list=build_static_allow_list(
            frontend_url=settings.frontend_url,
            base_url=settings.base_url,
            extra_origins=[settings.widget_base, *settings.allowed_origins],
            development=settings.is_development,
        ),
        development=settings.is_development,
        site_lookup=site_lookup or verified_site_lookup,
    )

    # Register exception handlers
    # Order matters: specific handlers first, then catch-all
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    app.state.limiter = limiter

    app.include_router(v1_router, prefix="/api/v1")

    # Health check endpoint (outside versioned API)
    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint for monitoring.

        Returns:
            {"status": "healthy"} if service is running.
        """
        return {"status": "healthy"}

    return app


configure_logging()

# Create the application instance
# Used by uvicorn: uvicorn commentkit.main:app
app = create_app()
