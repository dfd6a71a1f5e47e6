"""HMAC-SHA256 sign/verify primitive shared by the origin and CSRF tokens."""

import hashlib
import hmac


def sign(payload: str, secret: str) -> str:
    """Sign a payload string.

    Args:
        payload: Text to authenticate.
        secret: Server-side HMAC key.

    Returns:
        Lowercase hex HMAC-SHA256 digest (64 chars).
    """
    return hmac.new(
        secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def verify(payload: str, signature: str, secret: str) -> bool:
    """Check a signature in constant time.

    Malformed input (non-str, unencodable text) is a verification failure,
    never an exception.

    Args:
        payload: Text that was signed.
        signature: Hex signature presented by the client.
        secret: Server-side HMAC key.

    Returns:
        True if the signature matches.
    """
    try:
        expected = sign(payload, secret).encode("ascii")
        presented = signature.encode("utf-8")
    except (AttributeError, UnicodeError):
        return False
    return hmac.compare_digest(expected, presented)


class TokenRejectedError(Exception):
    """A signed token failed verification.

    Attributes:
        reason: Which check failed. Log it; never return it to the client.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)
