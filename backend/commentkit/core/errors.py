"""API error classes.

Every failure that reaches a client is an APIError subclass carrying a
machine-readable code, a human-readable message and an HTTP status. The
exception handler in main.py renders them into the error envelope.

Token-level failures (malformed, expired, bad signature, origin mismatch)
all collapse into InvalidTokenError with one generic message. The precise
reason is logged server-side only so a forger gets no oracle.
"""


class APIError(Exception):
    """Base class for API errors.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field or format validation failed (400)."""

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid session credential was presented.
    """

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ForbiddenError(APIError):
    """Authenticated (or anonymous) caller is not allowed to do this (403)."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class NotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class InvalidTokenError(APIError):
    """Origin or CSRF token rejected (403).

    The message never says which check failed.
    """

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(
            code="INVALID_TOKEN",
            message=message,
            status_code=403,
        )


class InvalidMagicLinkError(APIError):
    """Magic link missing, unknown, already used or expired (400)."""

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(
            code="INVALID_MAGIC_LINK",
            message=message,
            status_code=400,
        )


class DomainNotRegisteredError(APIError):
    """No site is registered for the requesting domain (404).

    Distinguished from DomainNotVerifiedError on purpose: the remediation
    differs (register vs. verify) and neither leaks key material.
    """

    def __init__(self) -> None:
        super().__init__(
            code="DOMAIN_NOT_REGISTERED",
            message="Domain not registered",
            status_code=404,
        )


class DomainNotVerifiedError(APIError):
    """The site exists but its domain ownership is unverified (403)."""

    def __init__(self) -> None:
        super().__init__(
            code="DOMAIN_NOT_VERIFIED",
            message="Domain not verified",
            status_code=403,
        )


class EmailDeliveryError(APIError):
    """Outbound magic-link email failed (500). Not retried."""

    def __init__(self) -> None:
        super().__init__(
            code="EMAIL_DELIVERY_FAILED",
            message="Failed to send magic link email. Please try again.",
            status_code=500,
        )

