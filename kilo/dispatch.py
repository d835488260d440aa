"""Result dispatch: single-context delivery of invocation outcomes.

Each invocation's result handler runs exactly once, on a *dispatch context*:
a single serialized execution context, the equivalent of a UI main thread.
Response decoding happens elsewhere (on a decode worker) and always finishes
before the outcome is handed to the dispatch context.

Two dispatch contexts are provided:

- :class:`ThreadDispatcher` owns a dedicated daemon thread.
- :class:`ManualDispatcher` queues work until the owning thread pumps it with
  :meth:`~ManualDispatcher.run_pending` or :meth:`~ManualDispatcher.run_until`.

Logger: ``kilo.dispatch`` — exceptions raised by result handlers are logged
at ERROR and never stop the dispatch context.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from types import TracebackType
from typing import Any, Protocol

from kilo._debug import wire_dispatch_logger
from kilo.config import CancellationMode
from kilo.errors import TransportError, WebServiceError

__all__ = [
    "DispatchContext",
    "Invocation",
    "ManualDispatcher",
    "ResultHandler",
    "ThreadDispatcher",
]

_logger = logging.getLogger("kilo.dispatch")

_POLL_INTERVAL = 0.05
"""Seconds between predicate checks while a ManualDispatcher waits for work."""

ResultHandler = Callable[[Any, WebServiceError | None], None]
"""Callback receiving ``(result, None)`` on success or ``(None, error)`` on failure."""


class DispatchContext(Protocol):
    """A serialized execution context that runs submitted callables in order."""

    def submit(self, fn: Callable[[], None]) -> None:
        """Schedule *fn* to run on the context."""
        ...


def _run_safely(fn: Callable[[], None]) -> None:
    try:
        fn()
    except Exception:
        _logger.exception("Dispatched callable raised")


# ---------------------------------------------------------------------------
# Dispatch contexts
# ---------------------------------------------------------------------------


class ThreadDispatcher:
    """Dispatch context backed by one dedicated daemon thread."""

    __slots__ = ("_closed", "_queue", "_thread")

    def __init__(self, name: str = "kilo-dispatch") -> None:
        """Start the dispatch thread."""
        self._queue: queue.SimpleQueue[Callable[[], None] | None] = queue.SimpleQueue()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def thread(self) -> threading.Thread:
        """The thread all submitted callables run on."""
        return self._thread

    def _run(self) -> None:
        while True:
            fn = self._queue.get()
            if fn is None:
                return
            _run_safely(fn)

    def submit(self, fn: Callable[[], None]) -> None:
        """Schedule *fn* on the dispatch thread.

        Raises:
            RuntimeError: If the dispatcher has been closed.

        """
        if self._closed:
            raise RuntimeError("ThreadDispatcher is closed")
        self._queue.put(fn)

    def close(self, timeout: float | None = 5.0) -> None:
        """Run already-queued callables, then stop the thread."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(None)
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=timeout)

    def __enter__(self) -> ThreadDispatcher:
        """Enter the context."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the context, stopping the thread."""
        self.close()


class ManualDispatcher:
    """Dispatch context pumped explicitly by its owning thread.

    Suits applications with their own main loop, and tests that need to
    control exactly when callbacks run.
    """

    __slots__ = ("_queue",)

    def __init__(self) -> None:
        """Initialize with an empty queue."""
        self._queue: queue.SimpleQueue[Callable[[], None]] = queue.SimpleQueue()

    def submit(self, fn: Callable[[], None]) -> None:
        """Queue *fn*; it runs on the next pump."""
        self._queue.put(fn)

    def pending(self) -> int:
        """Approximate number of queued callables."""
        return self._queue.qsize()

    def run_pending(self) -> int:
        """Run every callable queued so far, in order.

        Returns:
            The number of callables run.

        """
        count = 0
        while True:
            try:
                fn = self._queue.get_nowait()
            except queue.Empty:
                return count
            _run_safely(fn)
            count += 1

    def run_until(self, predicate: Callable[[], bool], timeout: float | None = None) -> bool:
        """Run callables as they arrive until *predicate* returns ``True``.

        Args:
            predicate: Checked before waiting and after each callable.
            timeout: Maximum seconds to wait, or ``None`` to wait forever.

        Returns:
            ``True`` if the predicate was satisfied, ``False`` on timeout.

        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not predicate():
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            wait = _POLL_INTERVAL if remaining is None else min(remaining, _POLL_INTERVAL)
            try:
                fn = self._queue.get(timeout=wait)
            except queue.Empty:
                continue
            _run_safely(fn)
        return True


# ---------------------------------------------------------------------------
# Invocation handle
# ---------------------------------------------------------------------------


class Invocation:
    """Handle for one in-flight invocation.

    The outcome is claimed exactly once: the first of completion or
    cancellation wins, and a cancellation requested before the outcome is
    claimed replaces any result with a cancelled ``TransportError``.
    """

    __slots__ = (
        "_cancel_requested",
        "_claimed",
        "_delivered",
        "_dispatcher",
        "_error",
        "_handler",
        "_id",
        "_lock",
        "_mode",
        "_on_cancel",
        "_result",
    )

    def __init__(
        self,
        invocation_id: int,
        handler: ResultHandler | None,
        dispatcher: DispatchContext,
        *,
        cancellation: CancellationMode = CancellationMode.DELIVER_FAILURE,
    ) -> None:
        """Initialize an unresolved invocation."""
        self._id = invocation_id
        self._handler = handler
        self._dispatcher = dispatcher
        self._mode = cancellation
        self._lock = threading.Lock()
        self._delivered = threading.Event()
        self._cancel_requested = False
        self._claimed = False
        self._on_cancel: Callable[[], None] | None = None
        self._result: Any = None
        self._error: WebServiceError | None = None

    @property
    def id(self) -> int:
        """Identifier unique within the issuing proxy."""
        return self._id

    def __repr__(self) -> str:
        """Return a short description of the invocation state."""
        if self._delivered.is_set():
            state = "failed" if self._error is not None else "succeeded"
        elif self._cancel_requested:
            state = "cancelling"
        else:
            state = "pending"
        return f"<Invocation {self._id} {state}>"

    def _bind_cancel(self, on_cancel: Callable[[], None]) -> None:
        """Attach the transport's cancel hook; runs it now if cancel was already requested."""
        with self._lock:
            self._on_cancel = on_cancel
            run_now = self._cancel_requested and not self._claimed
        if run_now:
            on_cancel()

    def cancel(self) -> bool:
        """Request cancellation.

        Returns:
            ``True`` if the request was accepted (the outcome had not yet
            been claimed), ``False`` if the invocation already completed.

        """
        with self._lock:
            if self._claimed:
                return False
            self._cancel_requested = True
            on_cancel = self._on_cancel
        if wire_dispatch_logger.isEnabledFor(logging.DEBUG):
            wire_dispatch_logger.debug("Cancel requested: invocation=%d", self._id)
        if on_cancel is not None:
            on_cancel()
        return True

    def cancelled(self) -> bool:
        """Whether the invocation resolved as cancelled."""
        return isinstance(self._error, TransportError) and self._error.cancelled

    def done(self) -> bool:
        """Whether the outcome has been delivered."""
        return self._delivered.is_set()

    def _complete(self, result: Any, error: WebServiceError | None) -> bool:
        """Claim the outcome and schedule delivery on the dispatch context.

        Returns:
            ``False`` if an outcome was already claimed.

        """
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            if self._cancel_requested and not (isinstance(error, TransportError) and error.cancelled):
                result, error = None, TransportError(None, cancelled=True)
            self._result = result
            self._error = error

        silent = self._mode is CancellationMode.SILENT and self.cancelled()
        if wire_dispatch_logger.isEnabledFor(logging.DEBUG):
            wire_dispatch_logger.debug(
                "Dispatching: invocation=%d, outcome=%s%s",
                self._id,
                "success" if error is None else type(error).__name__,
                " (silent)" if silent else "",
            )
        if silent:
            self._delivered.set()
            return True
        try:
            self._dispatcher.submit(self._deliver)
        except Exception:
            # The handler cannot run, but waiters on the handle still see the outcome.
            _logger.exception("Cannot dispatch outcome of invocation %d", self._id, extra={"invocation": self._id})
            self._delivered.set()
        return True

    def _deliver(self) -> None:
        handler = self._handler
        try:
            if handler is not None:
                handler(self._result, self._error)
        except Exception:
            _logger.exception("Result handler for invocation %d raised", self._id, extra={"invocation": self._id})
        finally:
            self._delivered.set()

    def exception(self, timeout: float | None = None) -> WebServiceError | None:
        """Wait for delivery and return the error, or ``None`` on success.

        Do not call this from the dispatch context itself; delivery needs it.

        Raises:
            TimeoutError: If the outcome is not delivered within *timeout*.

        """
        if not self._delivered.wait(timeout):
            raise TimeoutError(f"Invocation {self._id} did not complete within {timeout}s")
        return self._error

    def result(self, timeout: float | None = None) -> Any:
        """Wait for delivery and return the result, raising the error if it failed.

        Raises:
            WebServiceError: The invocation's failure.
            TimeoutError: If the outcome is not delivered within *timeout*.

        """
        error = self.exception(timeout)
        if error is not None:
            raise error
        return self._result
