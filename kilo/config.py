"""Configuration for :class:`~kilo.proxy.WebServiceProxy`."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "CancellationMode",
    "ProxyConfig",
]


class CancellationMode(Enum):
    """What the caller observes when an invocation is cancelled.

    Attributes:
        DELIVER_FAILURE: The result handler receives a ``TransportError``
            with ``cancelled=True``.
        SILENT: The result handler is not called; the invocation handle
            still resolves with the cancellation error.

    """

    DELIVER_FAILURE = "deliver_failure"
    SILENT = "silent"


@dataclass(frozen=True)
class ProxyConfig:
    """Settings fixed for the lifetime of a proxy.

    Attributes:
        timeout: Per-request timeout in seconds, applied by the transport.
        follow_redirects: Whether the transport follows redirects.
        decode_workers: Threads used to classify and decode responses.
        strict_file_reads: Fail the invocation with ``EncodingError`` when
            a file attachment cannot be read, instead of sending an empty part.
        cancellation: Caller-visible behavior on cancellation.

    Raises:
        ValueError: If *timeout* <= 0 or *decode_workers* < 1.

    """

    timeout: float = 60.0
    follow_redirects: bool = True
    decode_workers: int = 1
    strict_file_reads: bool = False
    cancellation: CancellationMode = CancellationMode.DELIVER_FAILURE

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.decode_workers < 1:
            raise ValueError(f"decode_workers must be >= 1, got {self.decode_workers}")
