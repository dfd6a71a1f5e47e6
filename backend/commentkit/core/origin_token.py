"""Origin tokens: a signed binding of a domain to the request Origin.

WHY: Comment writes carry a ``domain`` claim in their body. A claim from
the body is attacker-controlled; the browser-set ``Origin`` header is not.
/widget/init reads the Origin header, mints a token over the hostname it
found there, and later writes must present that token. The domain in the
token is only as trustworthy as the caller of issue_origin_token(): it must
pass the hostname parsed from a verified Origin header, never a
client-supplied field.

Wire format: base64("<domain>:<issued_at_ms>:<hex signature>"), the
signature being HMAC-SHA256 over "<domain>:<issued_at_ms>". Tokens are
stateless and non-renewable; a fresh one is requested per page load.
"""

import base64
import binascii
import logging
import time
from dataclasses import dataclass
from enum import Enum

from commentkit.core.signing import TokenRejectedError, sign, verify

logger = logging.getLogger(__name__)

ORIGIN_TOKEN_TTL_MS = 60 * 60 * 1000
"""One hour. A token aged exactly this long is still valid."""


class OriginTokenError(str, Enum):
    """Why an origin token was rejected. Server-side logging only."""

    MALFORMED_FORMAT = "malformed_format"
    EXPIRED = "expired"
    BAD_SIGNATURE = "bad_signature"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def b64encode_text(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def b64decode_text(value: str) -> str | None:
    """Decode standard base64 to text; None when it is not valid base64/UTF-8."""
    try:
        return base64.b64decode(value.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None


@dataclass(frozen=True)
class OriginToken:
    """Decoded origin token.

    Attributes:
        domain: Hostname only (no scheme, no port).
        issued_at_ms: Issuance time in epoch milliseconds.
        signature: Hex HMAC-SHA256 over "domain:issued_at_ms".
    """

    domain: str
    issued_at_ms: int
    signature: str

    @property
    def payload(self) -> str:
        return f"{self.domain}:{self.issued_at_ms}"

    def encode(self) -> str:
        """Serialize to the opaque string handed to the client."""
        return b64encode_text(f"{self.payload}:{self.signature}")


def issue_origin_token(
    domain: str, secret: str, issued_at_ms: int | None = None
) -> OriginToken:
    """Mint an origin token for a domain.

    Args:
        domain: Hostname taken from the request's Origin header.
        secret: Server HMAC key.
        issued_at_ms: Issuance time; defaults to now.

    Returns:
        The signed token. Call .encode() for the wire form.

    Raises:
        ValueError: If domain is empty.
    """
    if not domain:
        msg = "domain must not be empty"
        raise ValueError(msg)

    issued = now_ms() if issued_at_ms is None else issued_at_ms
    payload = f"{domain}:{issued}"
    return OriginToken(
        domain=domain,
        issued_at_ms=issued,
        signature=sign(payload, secret),
    )


def verify_origin_token(
    token: str, secret: str, at_ms: int | None = None
) -> str:
    """Verify an encoded origin token.

    Checks run in a fixed order: format, signature, age. Any tampering
    with the payload therefore surfaces as BAD_SIGNATURE.

    Args:
        token: Encoded token from the X-Origin-Token header.
        secret: Server HMAC key.
        at_ms: Verification time; defaults to now.

    Returns:
        The domain bound into the token.

    Raises:
        TokenRejectedError: With an OriginTokenError reason.
    """
    decoded = b64decode_text(token) if isinstance(token, str) else None
    if decoded is None:
        raise TokenRejectedError(OriginTokenError.MALFORMED_FORMAT)

    # Domain may itself contain colons (IPv6 literal), so split from the right
    parts = decoded.rsplit(":", 2)
    if len(parts) != 3 or not all(parts):
        raise TokenRejectedError(OriginTokenError.MALFORMED_FORMAT)
    domain, issued_raw, signature = parts

    if not verify(f"{domain}:{issued_raw}", signature, secret):
        raise TokenRejectedError(OriginTokenError.BAD_SIGNATURE)

    if not issued_raw.isdigit():
        raise TokenRejectedError(OriginTokenError.MALFORMED_FORMAT)

    now = now_ms() if at_ms is None else at_ms
    if now - int(issued_raw) > ORIGIN_TOKEN_TTL_MS:
        raise TokenRejectedError(OriginTokenError.EXPIRED)

    return domain
