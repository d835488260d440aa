"""Error taxonomy for web service invocations.

Every terminal failure of an invocation is delivered to the caller's result
handler as one of these exceptions.  They share the ``WebServiceError`` base so
a single ``except WebServiceError`` (or ``isinstance`` check in a handler)
covers all of them.
"""

from __future__ import annotations

__all__ = [
    "DecodingError",
    "EncodingError",
    "HttpError",
    "TransportError",
    "WebServiceError",
]


class WebServiceError(Exception):
    """Base class for all invocation failures."""


class EncodingError(WebServiceError):
    """Raised when request arguments cannot be encoded (e.g. an unreadable file)."""


class TransportError(WebServiceError):
    """Raised when the HTTP exchange did not produce a response.

    Covers connectivity failures, timeouts, and cancellation.

    Attributes:
        cause: The underlying exception from the transport, if any.
        cancelled: ``True`` when the invocation was cancelled by the caller.

    """

    def __init__(self, cause: BaseException | None, *, cancelled: bool = False) -> None:
        """Initialize with the underlying transport exception."""
        self.cause = cause
        self.cancelled = cancelled
        if cancelled:
            detail = "request cancelled"
        elif cause is not None:
            detail = f"{type(cause).__name__}: {cause}"
        else:
            detail = "no response received"
        super().__init__(detail)


class HttpError(WebServiceError):
    """Raised when the server responds with a non-2xx status code.

    Attributes:
        status_code: The HTTP status code.
        message: Server-supplied text, the standard reason phrase, or ``None``.

    """

    def __init__(self, status_code: int, message: str | None = None) -> None:
        """Initialize with status code and optional message."""
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")


class DecodingError(WebServiceError):
    """Raised when a 2xx response body could not be decoded.

    Attributes:
        cause: The exception raised by the response decoder.

    """

    def __init__(self, cause: BaseException) -> None:
        """Initialize with the decoder's exception."""
        self.cause = cause
        super().__init__(f"Failed to decode response: {type(cause).__name__}: {cause}")
