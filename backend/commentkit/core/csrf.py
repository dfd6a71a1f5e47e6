"""CSRF tokens (double-submit pattern).

The token is handed to the widget once by /widget/init and must be echoed
back in the X-CSRF-Token header of every mutating request. A cross-site
form cannot read the token, and the origin embedded in it is compared with
the live Origin header, so a token leaked from origin A is useless from
origin B.

Wire format: base64("<origin>:<issued_at_ms>:<nonce>:<hex signature>"),
the signature being HMAC-SHA256 over the first three fields. The origin
carries its own colons ("https://a.com:8443") so the token is parsed from
the right.
"""

import logging
import secrets
from dataclasses import dataclass
from enum import Enum

from commentkit.core.origin_token import b64decode_text, b64encode_text, now_ms
from commentkit.core.origin_trust import normalize_origin
from commentkit.core.signing import TokenRejectedError, sign, verify

logger = logging.getLogger(__name__)

CSRF_TOKEN_TTL_MS = 24 * 60 * 60 * 1000
"""24 hours. A token aged exactly this long is still valid."""

_NONCE_BYTES = 16


class CsrfError(str, Enum):
    """Why a CSRF token was rejected. Server-side logging only."""

    MALFORMED_FORMAT = "malformed_format"
    ORIGIN_MISMATCH = "origin_mismatch"
    EXPIRED = "expired"
    BAD_TIMESTAMP = "bad_timestamp"
    BAD_SIGNATURE = "bad_signature"


@dataclass(frozen=True)
class CsrfToken:
    """Decoded CSRF token.

    Attributes:
        origin: Full scheme+host[:port] the token was issued to.
        issued_at_ms: Issuance time in epoch milliseconds.
        nonce: 16 random bytes, hex.
        signature: Hex HMAC-SHA256 over "origin:issued_at_ms:nonce".
    """

    origin: str
    issued_at_ms: int
    nonce: str
    signature: str

    @property
    def payload(self) -> str:
        return f"{self.origin}:{self.issued_at_ms}:{self.nonce}"

    def encode(self) -> str:
        return b64encode_text(f"{self.payload}:{self.signature}")


def issue_csrf_token(
    origin: str, secret: str, issued_at_ms: int | None = None
) -> CsrfToken:
    """Mint a CSRF token bound to an origin.

    Args:
        origin: Request Origin header value.
        secret: Server HMAC key.
        issued_at_ms: Issuance time; defaults to now.

    Returns:
        The signed token. Call .encode() for the wire form.

    Raises:
        ValueError: If origin is empty.
    """
    if not origin:
        msg = "origin must not be empty"
        raise ValueError(msg)

    issued = now_ms() if issued_at_ms is None else issued_at_ms
    nonce = secrets.token_hex(_NONCE_BYTES)
    payload = f"{origin}:{issued}:{nonce}"
    return CsrfToken(
        origin=origin,
        issued_at_ms=issued,
        nonce=nonce,
        signature=sign(payload, secret),
    )


def validate_csrf_token(
    token: str | None,
    origin: str | None,
    secret: str,
    at_ms: int | None = None,
) -> None:
    """Validate a CSRF token against the request origin.

    Order: format, signature, origin binding, age. Tampering anywhere in
    the token therefore reports BAD_SIGNATURE.

    Args:
        token: X-CSRF-Token header value.
        origin: Request Origin header value.
        secret: Server HMAC key.
        at_ms: Validation time; defaults to now.

    Raises:
        TokenRejectedError: With a CsrfError reason.
    """
    decoded = b64decode_text(token) if isinstance(token, str) else None
    if decoded is None:
        raise TokenRejectedError(CsrfError.MALFORMED_FORMAT)

    parts = decoded.rsplit(":", 3)
    if len(parts) != 4 or not all(parts):
        raise TokenRejectedError(CsrfError.MALFORMED_FORMAT)
    token_origin, issued_raw, nonce, signature = parts

    if not verify(f"{token_origin}:{issued_raw}:{nonce}", signature, secret):
        raise TokenRejectedError(CsrfError.BAD_SIGNATURE)

    if not origin or token_origin != origin:
        raise TokenRejectedError(CsrfError.ORIGIN_MISMATCH)

    try:
        issued = int(issued_raw)
    except ValueError:
        raise TokenRejectedError(CsrfError.MALFORMED_FORMAT) from None

    age = (now_ms() if at_ms is None else at_ms) - issued
    if age < 0:
        raise TokenRejectedError(CsrfError.BAD_TIMESTAMP)
    if age > CSRF_TOKEN_TTL_MS:
        raise TokenRejectedError(CsrfError.EXPIRED)


def is_bridge_origin(origin: str | None, bridge_origins: list[str]) -> bool:
    """Whether a request comes from the widget's own iframe bridge.

    The iframe is served from the API (or dashboard) origin and proxies
    writes for the host page; those requests are exempt from strict CSRF
    matching and rely on the origin token check instead. The match is an
    exact comparison of serialized origins, never a prefix or suffix test.

    Args:
        origin: Request Origin header value.
        bridge_origins: Configured API, frontend and widget URLs.

    Returns:
        True only for an exact origin match.
    """
    normalized = normalize_origin(origin)
    if normalized is None or normalized != origin:
        return False
    return normalized in {normalize_origin(url) for url in bridge_origins}
