"""Query-string, form, and multipart encoders for request arguments.

All encoders take an argument mapping (native values or
:mod:`kilo.arguments` variants), expand list values into one occurrence per
element, and skip null occurrences.  Timestamps are written as integer
milliseconds since the epoch.

Query and form encoding share one format::

    key=value&key=value

Multipart bodies are written part by part::

    --{boundary}\\r\\n
    Content-Disposition: form-data; name="{key}"[; filename="{name}"]\\r\\n
    [Content-Type: application/octet-stream\\r\\n]
    \\r\\n
    {value or file bytes}\\r\\n
    ...
    --{boundary}--\\r\\n

Both ``key`` and ``name`` are percent-encoded, so quotes and line breaks
never reach the part headers.

Logger: ``kilo.encoding`` — unreadable file attachments are logged at WARNING.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from io import BytesIO
from typing import Final
from urllib.parse import quote

from kilo.arguments import (
    BooleanArg,
    FileArg,
    NullArg,
    NumberArg,
    ScalarArg,
    StringArg,
    TimestampArg,
    iter_occurrences,
    normalize_arguments,
)
from kilo.errors import EncodingError

__all__ = [
    "encode_form_body",
    "encode_multipart_body",
    "encode_query",
    "new_boundary",
    "url_encode",
]

_logger = logging.getLogger("kilo.encoding")

# Characters left unescaped in a query component.  ``&``, ``=``, ``#`` are
# escaped so that values survive a round trip through a query parser; ``+``
# is kept here and escaped separately below.
_QUERY_SAFE: Final = "!$'()*+,/:;?@"

_CRLF: Final = b"\r\n"


def url_encode(text: str) -> str:
    """Percent-encode *text* for use as a query key or value.

    Literal ``+`` characters are written as ``%2B`` so servers never read
    them as an encoded space.
    """
    return quote(text, safe=_QUERY_SAFE).replace("+", "%2B")


def new_boundary() -> str:
    """Return a fresh, unguessable multipart boundary token."""
    return f"kilo-{uuid.uuid4().hex}"


def _stringify(value: ScalarArg) -> str:
    match value:
        case StringArg(text):
            return text
        case BooleanArg(flag):
            return "true" if flag else "false"
        case NumberArg(number):
            return str(number)
        case TimestampArg(millis):
            return str(millis)
        case FileArg(ref):
            return ref.name
        case NullArg():
            return ""


def encode_query(arguments: Mapping[str, object]) -> str:
    """Encode arguments as a URL query string (without the leading ``?``).

    Args:
        arguments: Argument mapping; list values produce repeated keys.

    Returns:
        ``key=value`` pairs joined by ``&``, or ``""`` when there is nothing
        to encode.

    """
    return "&".join(
        f"{url_encode(key)}={url_encode(_stringify(value))}"
        for key, value in iter_occurrences(normalize_arguments(arguments))
    )


def encode_form_body(arguments: Mapping[str, object]) -> bytes:
    """Encode arguments as an ``application/x-www-form-urlencoded`` body."""
    return encode_query(arguments).encode("utf-8")


def _read_file(arg: FileArg, key: str, *, strict: bool) -> bytes:
    try:
        return arg.ref.source.read_bytes()
    except OSError as exc:
        if strict:
            raise EncodingError(f"Cannot read file {arg.ref.name!r} for argument {key!r}: {exc}") from exc
        _logger.warning(
            "Cannot read file %r for argument %r, sending an empty part",
            arg.ref.name,
            key,
            extra={"argument": key, "filename": arg.ref.name, "error": str(exc)},
        )
        return b""


def encode_multipart_body(
    arguments: Mapping[str, object],
    boundary: str,
    *,
    strict_files: bool = False,
) -> bytes:
    """Encode arguments as a ``multipart/form-data`` body.

    Args:
        arguments: Argument mapping; list values produce one part per element.
        boundary: Part delimiter; must not occur inside any part.
        strict_files: Raise instead of sending an empty part when a file
            attachment cannot be read.

    Returns:
        The complete body, including the closing boundary line.

    Raises:
        EncodingError: If *strict_files* is set and a file cannot be read.

    """
    delimiter = f"--{boundary}\r\n".encode()
    buf = BytesIO()
    for key, value in iter_occurrences(normalize_arguments(arguments)):
        buf.write(delimiter)
        buf.write(f'Content-Disposition: form-data; name="{url_encode(key)}"'.encode())
        if isinstance(value, FileArg):
            buf.write(f'; filename="{url_encode(value.ref.name)}"\r\n'.encode())
            buf.write(b"Content-Type: application/octet-stream\r\n\r\n")
            buf.write(_read_file(value, key, strict=strict_files))
        else:
            buf.write(_CRLF + _CRLF)
            buf.write(_stringify(value).encode("utf-8"))
        buf.write(_CRLF)
    buf.write(f"--{boundary}--\r\n".encode())
    return buf.getvalue()
