"""Asynchronous HTTP transport using httpx.

:class:`AsyncTransport` owns an ``httpx.AsyncClient`` driven by a private
asyncio event loop running on a daemon thread.  Requests are submitted from
any thread and complete through a callback, so the submitting thread never
waits.  Each submission returns a :class:`TransportCall` that can cancel the
in-flight exchange.

The loop, thread, and client are created lazily on first use and torn down
by :meth:`AsyncTransport.close`; a closed transport restarts on next use.

Logger: ``kilo.transport`` — loop lifecycle at DEBUG.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from types import TracebackType

import httpx

from kilo._debug import wire_request_logger
from kilo.request import RequestDescriptor
from kilo.response import RawResponse

__all__ = [
    "AsyncTransport",
    "CompletionHandler",
    "TransportCall",
]

_logger = logging.getLogger("kilo.transport")

CompletionHandler = Callable[[RawResponse | None, BaseException | None], None]
"""Called once per request with ``(response, None)`` or ``(None, exception)``."""


# ---------------------------------------------------------------------------
# Loop state container
# ---------------------------------------------------------------------------


@dataclass
class _LoopState:
    """Mutable event-loop state owned by an ``AsyncTransport``."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    loop: asyncio.AbstractEventLoop | None = None
    thread: threading.Thread | None = None
    client: httpx.AsyncClient | None = None
    pending: set[concurrent.futures.Future[RawResponse]] = field(default_factory=set)


class TransportCall:
    """Handle for one submitted request."""

    __slots__ = ("_future",)

    def __init__(self, future: concurrent.futures.Future[RawResponse]) -> None:
        """Wrap the future returned by ``run_coroutine_threadsafe``."""
        self._future = future

    def cancel(self) -> bool:
        """Cancel the exchange if it has not finished yet.

        The completion handler then receives ``asyncio.CancelledError``.
        """
        return self._future.cancel()

    def done(self) -> bool:
        """Whether the exchange has finished, failed, or been cancelled."""
        return self._future.done()


class AsyncTransport:
    """Runs HTTP exchanges on a background event loop.

    Args:
        timeout: Per-request timeout in seconds.
        follow_redirects: Whether redirects are followed.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport`` or
            ``httpx.ASGITransport`` for tests.

    """

    __slots__ = ("_follow_redirects", "_state", "_timeout", "_transport")

    def __init__(
        self,
        *,
        timeout: float = 60.0,
        follow_redirects: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Configure the transport; nothing is started until first use."""
        self._timeout = timeout
        self._follow_redirects = follow_redirects
        self._transport = transport
        self._state = _LoopState()

    # -- Lifecycle -----------------------------------------------------------

    def _ensure_loop(self) -> tuple[asyncio.AbstractEventLoop, httpx.AsyncClient]:
        state = self._state
        with state.lock:
            if state.loop is None or state.loop.is_closed():
                loop = asyncio.new_event_loop()
                thread = threading.Thread(target=loop.run_forever, name="kilo-transport", daemon=True)
                thread.start()
                state.loop = loop
                state.thread = thread
                state.client = None
                _logger.debug("Started transport event loop")
            if state.client is None:
                state.client = httpx.AsyncClient(
                    timeout=self._timeout,
                    follow_redirects=self._follow_redirects,
                    transport=self._transport,
                )
            return state.loop, state.client

    def close(self) -> None:
        """Cancel in-flight exchanges, close the client, and stop the event loop."""
        state = self._state
        # Completion callbacks take state.lock on the loop thread, so the
        # lock is released before anything below waits on that thread.
        with state.lock:
            in_flight = list(state.pending)
            loop, client, thread = state.loop, state.client, state.thread
            state.loop = None
            state.client = None
            state.thread = None
        for future in in_flight:
            future.cancel()
        if loop is None or loop.is_closed():
            return
        try:
            if client is not None:
                asyncio.run_coroutine_threadsafe(client.aclose(), loop).result(timeout=5)
        finally:
            loop.call_soon_threadsafe(loop.stop)
            if thread is not None:
                thread.join(timeout=5)
            if thread is None or not thread.is_alive():
                loop.close()
            _logger.debug("Stopped transport event loop")

    def __del__(self) -> None:
        """Safety net: stop the loop on garbage collection."""
        with contextlib.suppress(Exception):
            self.close()

    def __enter__(self) -> AsyncTransport:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager, closing the transport."""
        self.close()

    # -- Requests ------------------------------------------------------------

    def submit(self, request: RequestDescriptor, on_complete: CompletionHandler) -> TransportCall:
        """Start an exchange without waiting for it.

        Args:
            request: The request to send.
            on_complete: Called exactly once, on the loop thread or (for a
                cancellation) on the cancelling thread.

        Returns:
            A handle that can cancel the exchange.

        """
        loop, client = self._ensure_loop()
        future = asyncio.run_coroutine_threadsafe(_send(client, request), loop)
        with self._state.lock:
            self._state.pending.add(future)

        def _done(f: concurrent.futures.Future[RawResponse]) -> None:
            with self._state.lock:
                self._state.pending.discard(f)
            if f.cancelled():
                on_complete(None, asyncio.CancelledError())
                return
            exc = f.exception()
            if exc is not None:
                on_complete(None, exc)
            else:
                on_complete(f.result(), None)

        future.add_done_callback(_done)
        return TransportCall(future)


async def _send(client: httpx.AsyncClient, request: RequestDescriptor) -> RawResponse:
    if wire_request_logger.isEnabledFor(logging.DEBUG):
        wire_request_logger.debug("Sending %s %s", request.method.value, request.url)
    response = await client.request(
        request.method.value,
        request.url,
        content=request.content,
        headers=request.headers,
    )
    return RawResponse(
        status_code=response.status_code,
        content_type=response.headers.get("Content-Type"),
        headers=response.headers,
        content=response.content,
    )
