"""Debug logging infrastructure for wire diagnostics.

Provides logger instances under the ``kilo.wire.*`` hierarchy and formatting
helpers for requests and responses.  Enabling
``logging.getLogger("kilo.wire").setLevel(logging.DEBUG)`` shows every
assembled request, every raw response, and every dispatch.

All formatting helpers return ``str`` and never log directly.  They are meant
to be called inside ``isEnabledFor`` guards so there is no overhead when debug
logging is disabled.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

# ---------------------------------------------------------------------------
# Logger hierarchy: kilo.wire.*
# ---------------------------------------------------------------------------

wire_request_logger = logging.getLogger("kilo.wire.request")
"""Request assembly and submission."""

wire_response_logger = logging.getLogger("kilo.wire.response")
"""Raw responses and classification."""

wire_dispatch_logger = logging.getLogger("kilo.wire.dispatch")
"""Result hand-off to the dispatch context."""

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 80
"""Maximum length for individual header values and body previews."""

_REDACTED_HEADERS = frozenset({"authorization", "cookie", "proxy-authorization"})


def _truncate(text: str) -> str:
    if len(text) > _MAX_VALUE_LEN:
        return text[:_MAX_VALUE_LEN] + "..."
    return text


def fmt_headers(headers: Mapping[str, str] | None) -> str:
    """Format headers compactly, redacting credentials.

    Returns:
        ``"{Content-Type='text/plain', Authorization=<redacted>}"`` or
        ``"{}"`` when there are none.

    """
    if not headers:
        return "{}"
    parts: list[str] = []
    for key, value in headers.items():
        if key.lower() in _REDACTED_HEADERS:
            parts.append(f"{key}=<redacted>")
        else:
            parts.append(f"{key}={_truncate(value)!r}")
    return "{" + ", ".join(parts) + "}"


def fmt_body(content: bytes | None) -> str:
    """Format a body as its size plus a short printable preview.

    Returns:
        ``"None"``, ``"0 bytes"``, or ``"12 bytes 'a=1&b=2'"``.

    """
    if content is None:
        return "None"
    if not content:
        return "0 bytes"
    preview = _truncate(content[: _MAX_VALUE_LEN + 1].decode("utf-8", errors="replace"))
    return f"{len(content)} bytes {preview!r}"
