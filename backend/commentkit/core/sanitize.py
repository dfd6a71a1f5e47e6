"""Comment content sanitization.

Defense-in-depth: the widget escapes HTML when rendering, so content is
stored unescaped (escaping here would double-escape and lose formatting).
Only obviously malicious patterns are stripped.
"""

import re

# =============================================================================
# Patterns
# =============================================================================

MAX_CONTENT_LENGTH = 10_000

_SCRIPT_BLOCK = re.compile(
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE
)
_QUOTED_EVENT_HANDLER = re.compile(r"\s*on\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_BARE_EVENT_HANDLER = re.compile(r"\s*on\w+\s*=\s*[^\s>]*", re.IGNORECASE)
_JAVASCRIPT_URL = re.compile(r"javascript\s*:", re.IGNORECASE)
_BASE64_DATA_URL = re.compile(r"data\s*:[^,\s]*base64", re.IGNORECASE)


# =============================================================================
# Public API
# =============================================================================


def sanitize_comment_content(content: str) -> str:
    """Strip null bytes and script vectors from comment text.

    Steps, in order: drop null bytes, truncate to MAX_CONTENT_LENGTH,
    remove <script> blocks, inline event handlers, javascript: URLs and
    base64 data: URLs, then trim surrounding whitespace.

    Args:
        content: Raw comment body from the request.

    Returns:
        Sanitized text (may be empty).
    """
    sanitized = content.replace("\x00", "")
    sanitized = sanitized[:MAX_CONTENT_LENGTH]
    sanitized = _SCRIPT_BLOCK.sub("", sanitized)
    sanitized = _QUOTED_EVENT_HANDLER.sub("", sanitized)
    sanitized = _BARE_EVENT_HANDLER.sub("", sanitized)
    sanitized = _JAVASCRIPT_URL.sub("", sanitized)
    sanitized = _BASE64_DATA_URL.sub("", sanitized)
    return sanitized.strip()
