"""Origin trust resolution.

Decides, per request, whether the browser-supplied Origin may receive
CORS trust. Two tiers:

1. Static allow-list: frontend URL, API base URL, ALLOWED_ORIGINS and,
   in development only, the localhost family.
2. Dynamic: the origin's hostname belongs to a site marked verified in
   the site registry.

Customer domains therefore gain trust by being verified, without a config
change per customer, while the dashboard/API origins stay trusted
unconditionally.
"""

import logging
from collections.abc import Awaitable, Callable
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

SiteLookup = Callable[[str], Awaitable[bool]]
"""Async predicate: is this hostname a verified site?"""

_DEFAULT_PORTS = {"http": 80, "https": 443}

_DEV_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)

_LOCAL_HOSTNAMES = frozenset({"localhost", "127.0.0.1"})
_PRIVATE_PREFIXES = ("192.168.", "10.")


def normalize_origin(url: str | None) -> str | None:
    """Reduce a URL to its origin (scheme://host[:port]).

    Mirrors how browsers serialize origins: lowercase scheme and host,
    default port dropped, path/query discarded.

    Args:
        url: Origin header value or any absolute URL.

    Returns:
        Serialized origin, or None if the value is not an absolute
        http(s) URL.
    """
    if not url:
        return None
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    host = parts.hostname
    if scheme not in _DEFAULT_PORTS or not host:
        return None
    if ":" in host:
        host = f"[{host}]"
    if port is None or port == _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def hostname_from_origin(origin: str | None) -> str | None:
    """Extract the bare hostname (no scheme, no port) from an origin.

    Args:
        origin: Origin header value.

    Returns:
        Lowercase hostname, or None when the origin is unparseable.
    """
    normalized = normalize_origin(origin)
    if normalized is None:
        return None
    return urlsplit(normalized).hostname


def is_local_hostname(hostname: str) -> bool:
    """Localhost, loopback, .local and private-LAN hostnames."""
    return (
        hostname in _LOCAL_HOSTNAMES
        or hostname.endswith(".local")
        or hostname.startswith(_PRIVATE_PREFIXES)
    )


def build_static_allow_list(
    *,
    frontend_url: str,
    base_url: str,
    extra_origins: list[str],
    development: bool,
) -> list[str]:
    """Assemble the statically trusted origins.

    Args:
        frontend_url: Dashboard origin.
        base_url: API's own serving origin.
        extra_origins: Additional configured origins.
        development: Whether to add the well-known dev server origins.

    Returns:
        Normalized origins, de-duplicated, in insertion order.
    """
    candidates = [frontend_url, base_url, *extra_origins]
    if development:
        candidates.extend(_DEV_ORIGINS)

    allow_list: list[str] = []
    for candidate in candidates:
        normalized = normalize_origin(candidate)
        if normalized and normalized not in allow_list:
            allow_list.append(normalized)
    return allow_list


def is_statically_allowed(
    origin: str, static_allow_list: list[str], *, development: bool
) -> bool:
    """Tier 1: exact match against the configured allow-list.

    In development any localhost-family hostname also passes.
    """
    normalized = normalize_origin(origin)
    if normalized is None:
        return False
    if normalized in static_allow_list:
        return True
    if development:
        hostname = urlsplit(normalized).hostname or ""
        return is_local_hostname(hostname)
    return False


async def is_origin_allowed(
    origin: str | None,
    static_allow_list: list[str],
    *,
    development: bool,
    site_lookup: SiteLookup,
) -> bool:
    """Decide whether an Origin receives CORS trust.

    Args:
        origin: Raw Origin header (None when absent).
        static_allow_list: Output of build_static_allow_list().
        development: Whether the service runs in development mode.
        site_lookup: Async predicate answering "is hostname a verified site".

    Returns:
        True if the origin is statically trusted or belongs to a verified
        site. site_lookup is expected to fail closed on its own errors.
    """
    if not origin:
        return False

    if is_statically_allowed(origin, static_allow_list, development=development):
        return True

    hostname = hostname_from_origin(origin)
    if hostname is None:
        return False

    return await site_lookup(hostname)
