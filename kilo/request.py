"""Request assembly: decides where arguments go and builds the request descriptor.

Arguments are placed in the query string unless the request is a POST
without explicit content, in which case they become the body, encoded per the
proxy's :class:`Encoding`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Final
from urllib.parse import urljoin

import httpx

from kilo._debug import fmt_body, fmt_headers, wire_request_logger
from kilo.encoding import encode_form_body, encode_multipart_body, encode_query, new_boundary

__all__ = [
    "APPLICATION_JSON",
    "APPLICATION_OCTET_STREAM",
    "APPLICATION_X_WWW_FORM_URLENCODED",
    "Encoding",
    "Method",
    "RequestDescriptor",
    "build_request",
]

APPLICATION_JSON: Final = "application/json"
APPLICATION_OCTET_STREAM: Final = "application/octet-stream"
APPLICATION_X_WWW_FORM_URLENCODED: Final = "application/x-www-form-urlencoded"
_MULTIPART_FORM_DATA: Final = "multipart/form-data"


class Method(StrEnum):
    """HTTP methods supported by the proxy."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class Encoding(Enum):
    """Body encodings for POST requests without explicit content."""

    APPLICATION_X_WWW_FORM_URLENCODED = "application/x-www-form-urlencoded"
    MULTIPART_FORM_DATA = "multipart/form-data"


@dataclass(frozen=True)
class RequestDescriptor:
    """Transport-ready description of one HTTP request.

    Attributes:
        method: HTTP method.
        url: Absolute URL including any query string.
        headers: Request headers (case-insensitive).
        content: Body bytes, or ``None`` for no body.
        content_type: Body content type, mirrored in ``headers``.

    """

    method: Method
    url: str
    headers: httpx.Headers
    content: bytes | None = None
    content_type: str | None = None


def build_request(
    method: Method | str,
    path: str,
    arguments: Mapping[str, object] | None = None,
    content: bytes | None = None,
    content_type: str | None = None,
    *,
    encoding: Encoding,
    base_url: str,
    headers: Mapping[str, str] | None = None,
    boundary: str | None = None,
    strict_files: bool = False,
) -> RequestDescriptor:
    """Assemble a request from method, path, arguments, and optional content.

    Args:
        method: HTTP method.
        path: Path resolved relative to *base_url*.
        arguments: Request arguments.
        content: Explicit body.  When given, arguments always go in the
            query string, even for POST.
        content_type: Content type of *content*; defaults to
            ``application/octet-stream``.  Ignored when *content* is ``None``.
        encoding: Body encoding for POST requests without *content*.
        base_url: Server base URL.
        headers: Caller headers; they override everything except the
            ``Content-Type`` of an encoded argument body.
        boundary: Multipart boundary; a fresh one is generated when ``None``.
        strict_files: Fail instead of sending empty parts for unreadable files.

    Returns:
        The assembled request descriptor.

    Raises:
        ValueError: If *method* is not a supported HTTP method.
        TypeError: If an argument value has an unsupported type.
        EncodingError: If *strict_files* is set and a file cannot be read.

    """
    method = Method(method.upper() if isinstance(method, str) else method)
    arguments = arguments or {}

    encode_body = method is Method.POST and content is None
    query = "" if encode_body else encode_query(arguments)
    url = urljoin(base_url, f"{path}?{query}" if query else path)

    merged = httpx.Headers()
    body: bytes | None
    body_type: str | None
    if encode_body:
        if encoding is Encoding.MULTIPART_FORM_DATA:
            boundary = boundary or new_boundary()
            body_type = f"{_MULTIPART_FORM_DATA}; boundary={boundary}"
            body = encode_multipart_body(arguments, boundary, strict_files=strict_files)
        else:
            body_type = APPLICATION_X_WWW_FORM_URLENCODED
            body = encode_form_body(arguments)
        merged.update(headers or {})
        merged["Content-Type"] = body_type
    else:
        body = content
        if content is not None:
            merged["Content-Type"] = content_type or APPLICATION_OCTET_STREAM
        merged.update(headers or {})
        body_type = merged.get("Content-Type") if content is not None else None

    descriptor = RequestDescriptor(method=method, url=url, headers=merged, content=body, content_type=body_type)
    if wire_request_logger.isEnabledFor(logging.DEBUG):
        wire_request_logger.debug(
            "Built request: %s %s, headers=%s, body=%s",
            method.value,
            url,
            fmt_headers(merged),
            fmt_body(body),
        )
    return descriptor
