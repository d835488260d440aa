"""Response classification and decoding.

:func:`classify` turns a raw HTTP response into either :class:`Success` or
:class:`~kilo.errors.HttpError`.  :func:`decode_response` then runs the
caller's response decoder on successful content, downgrading decoder failures
to :class:`~kilo.errors.DecodingError`.

Content classification is fixed: JSON (``application/json``), text
(``text/*``), and everything else as binary.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from kilo._debug import fmt_body, fmt_headers, wire_response_logger
from kilo.codec import JsonCodec
from kilo.errors import DecodingError, HttpError, WebServiceError
from kilo.request import APPLICATION_JSON

__all__ = [
    "RawResponse",
    "ResponseDecoder",
    "Success",
    "classify",
    "decode_response",
    "default_decoder",
    "json_decoder",
    "mime_type",
]

ResponseDecoder = Callable[[bytes, str | None], Any]
"""Callable that turns response content and its MIME type into a result."""

_DEFAULT_CODEC = JsonCodec()


@dataclass(frozen=True)
class RawResponse:
    """Response as received from the transport.

    Attributes:
        status_code: HTTP status code.
        content_type: Raw ``Content-Type`` header value, if any.
        headers: Response headers.
        content: Response body.

    """

    status_code: int
    content_type: str | None
    headers: Mapping[str, str] = field(default_factory=dict)
    content: bytes = b""


@dataclass(frozen=True)
class Success:
    """Classified 2xx response, prior to decoding."""

    content: bytes
    content_type: str | None
    headers: Mapping[str, str] = field(default_factory=dict)


def mime_type(content_type: str | None) -> str | None:
    """Return the lower-cased MIME type of a ``Content-Type`` value, without parameters."""
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower() or None


def _status_phrase(status_code: int) -> str | None:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return None


def classify(
    status_code: int,
    content_type: str | None,
    headers: Mapping[str, str],
    content: bytes,
) -> Success | HttpError:
    """Classify a response by status code.

    Args:
        status_code: HTTP status code.
        content_type: ``Content-Type`` header value, if any.
        headers: Response headers.
        content: Response body.

    Returns:
        ``Success`` for 2xx responses; otherwise an ``HttpError`` whose
        message is the body text for ``text/*`` responses and the standard
        reason phrase (or ``None``) for anything else.

    """
    if status_code // 100 == 2:
        return Success(content=content, content_type=content_type, headers=headers)

    mime = mime_type(content_type)
    if mime is not None and mime.startswith("text/"):
        message: str | None = content.decode("utf-8", errors="replace")
    else:
        message = _status_phrase(status_code)
    return HttpError(status_code, message)


def decode_response(raw: RawResponse, decoder: ResponseDecoder) -> tuple[Any, WebServiceError | None]:
    """Classify *raw* and decode successful content.

    Args:
        raw: Response from the transport.
        decoder: Applied to non-empty 2xx content.

    Returns:
        ``(result, None)`` on success (``result`` is ``None`` for an empty
        body), or ``(None, error)`` for HTTP and decoding failures.

    """
    if wire_response_logger.isEnabledFor(logging.DEBUG):
        wire_response_logger.debug(
            "Response: status=%d, content_type=%s, headers=%s, body=%s",
            raw.status_code,
            raw.content_type,
            fmt_headers(raw.headers),
            fmt_body(raw.content),
        )
    outcome = classify(raw.status_code, raw.content_type, raw.headers, raw.content)
    if isinstance(outcome, HttpError):
        return None, outcome
    if not outcome.content:
        return None, None
    try:
        return decoder(outcome.content, mime_type(outcome.content_type)), None
    except Exception as exc:
        wire_response_logger.debug("Decoder failed: %s", exc, exc_info=True)
        return None, DecodingError(exc)


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------


def default_decoder(content: bytes, content_type: str | None) -> Any:
    """Decode JSON and text content; return anything else as raw bytes."""
    if content_type is not None:
        if content_type.startswith(APPLICATION_JSON):
            return _DEFAULT_CODEC.loads(content)
        if content_type.startswith("text/"):
            return content.decode("utf-8")
    return content


def json_decoder(result_type: Any = None, *, codec: JsonCodec | None = None) -> ResponseDecoder:
    """Build a decoder that parses JSON content, optionally into *result_type*.

    Non-JSON content decodes to ``None``.

    Args:
        result_type: Target type passed to :meth:`JsonCodec.convert`.
        codec: Codec to use; defaults to a shared :class:`JsonCodec`.

    """
    active = codec or _DEFAULT_CODEC

    def _decode(content: bytes, content_type: str | None) -> Any:
        if content_type is None or not content_type.startswith(APPLICATION_JSON):
            return None
        return active.loads(content, result_type)

    return _decode
