"""Web service invocation proxy.

:class:`WebServiceProxy` ties the pipeline together::

    invoke() -> build_request() -> AsyncTransport -> decode worker -> dispatch context -> result_handler

``invoke`` never blocks: it assembles the request, submits it, and returns an
:class:`~kilo.dispatch.Invocation` handle.  The response is classified and
decoded on a decode worker thread, then the result handler runs exactly once
on the proxy's dispatch context.

Example::

    with WebServiceProxy("https://example.com/api/") as proxy:
        inv = proxy.invoke(Method.GET, "items", {"tags": ["a", "b"]})
        items = inv.result(timeout=10)

"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType
from typing import Any

import httpx

from kilo._debug import wire_request_logger
from kilo.codec import JsonCodec
from kilo.config import ProxyConfig
from kilo.dispatch import DispatchContext, Invocation, ResultHandler, ThreadDispatcher
from kilo.errors import EncodingError, TransportError, WebServiceError
from kilo.request import APPLICATION_JSON, Encoding, Method, build_request
from kilo.response import RawResponse, ResponseDecoder, decode_response, default_decoder, json_decoder
from kilo.transport import AsyncTransport

__all__ = ["WebServiceProxy"]


class WebServiceProxy:
    """Invokes REST-style web service methods against one server.

    Attributes:
        encoding: Body encoding for POST requests without explicit content.
            Read at request time; set it before issuing calls.
        headers: Default headers sent with every request.

    """

    def __init__(
        self,
        server_url: str,
        *,
        config: ProxyConfig | None = None,
        dispatcher: DispatchContext | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        codec: JsonCodec | None = None,
    ) -> None:
        """Create a proxy.

        Args:
            server_url: Base URL that request paths are resolved against.
                Include a trailing ``/`` to resolve paths below it.
            config: Proxy settings; defaults to ``ProxyConfig()``.
            dispatcher: Context on which result handlers run.  When ``None``
                the proxy starts (and later closes) its own
                :class:`ThreadDispatcher`.
            transport: Optional httpx transport for the underlying client.
            codec: JSON codec for ``json=`` bodies and typed results.

        """
        self.config = config or ProxyConfig()
        self.encoding = Encoding.APPLICATION_X_WWW_FORM_URLENCODED
        self.headers: dict[str, str] = {}
        self._server_url = server_url
        self._codec = codec or JsonCodec()
        self._owns_dispatcher = dispatcher is None
        self._dispatcher: DispatchContext = dispatcher if dispatcher is not None else ThreadDispatcher()
        self._transport = AsyncTransport(
            timeout=self.config.timeout,
            follow_redirects=self.config.follow_redirects,
            transport=transport,
        )
        self._decode_pool = ThreadPoolExecutor(
            max_workers=self.config.decode_workers,
            thread_name_prefix="kilo-decode",
        )
        self._ids = itertools.count(1)
        self._closed = False

    @property
    def server_url(self) -> str:
        """The base URL."""
        return self._server_url

    @property
    def dispatcher(self) -> DispatchContext:
        """The context result handlers run on."""
        return self._dispatcher

    def invoke(
        self,
        method: Method | str,
        path: str,
        arguments: Mapping[str, object] | None = None,
        content: bytes | None = None,
        *,
        content_type: str | None = None,
        json: object = None,
        headers: Mapping[str, str] | None = None,
        decoder: ResponseDecoder | None = None,
        result_type: Any = None,
        result_handler: ResultHandler | None = None,
    ) -> Invocation:
        """Invoke a web service method.

        Args:
            method: HTTP method.
            path: Path resolved relative to the server URL.
            arguments: Request arguments.  They form the query string unless
                this is a POST without *content*, in which case they form the
                body per :attr:`encoding`.
            content: Explicit request body.
            content_type: Content type of *content*.
            json: Object serialized with the proxy's codec as an
                ``application/json`` body.  Mutually exclusive with *content*.
            headers: Per-call headers, merged over :attr:`headers`.
            decoder: Response decoder; defaults to JSON/text/bytes by
                content type, or typed JSON when *result_type* is given.
            result_type: Target type for JSON results (e.g. a dataclass).
            result_handler: Called once with ``(result, error)`` on the
                dispatch context.

        Returns:
            A handle to wait on or cancel the invocation.

        Raises:
            ValueError: If *method* is unsupported or both *content* and
                *json* are given.
            TypeError: If an argument value has an unsupported type.
            RuntimeError: If the proxy has been closed.

        """
        if self._closed:
            raise RuntimeError("WebServiceProxy is closed")
        if json is not None:
            if content is not None:
                raise ValueError("content and json are mutually exclusive")
            content = self._codec.dumps(json)
            content_type = content_type or APPLICATION_JSON
        if decoder is None:
            decoder = json_decoder(result_type, codec=self._codec) if result_type is not None else default_decoder

        invocation = Invocation(
            next(self._ids),
            result_handler,
            self._dispatcher,
            cancellation=self.config.cancellation,
        )
        try:
            request = build_request(
                method,
                path,
                arguments,
                content,
                content_type,
                encoding=self.encoding,
                base_url=self._server_url,
                headers={**self.headers, **(headers or {})},
                strict_files=self.config.strict_file_reads,
            )
        except EncodingError as exc:
            invocation._complete(None, exc)
            return invocation

        if wire_request_logger.isEnabledFor(logging.DEBUG):
            wire_request_logger.debug("Invocation %d: %s %s", invocation.id, request.method.value, request.url)

        def _on_complete(raw: RawResponse | None, exc: BaseException | None) -> None:
            try:
                self._decode_pool.submit(self._finish, invocation, decoder, raw, exc)
            except RuntimeError:
                # Decode pool already shut down by close().
                self._finish(invocation, decoder, raw, exc)

        call = self._transport.submit(request, _on_complete)
        invocation._bind_cancel(call.cancel)
        return invocation

    @staticmethod
    def _finish(
        invocation: Invocation,
        decoder: ResponseDecoder,
        raw: RawResponse | None,
        exc: BaseException | None,
    ) -> None:
        result: Any = None
        error: WebServiceError | None
        if raw is None:
            error = TransportError(exc, cancelled=isinstance(exc, asyncio.CancelledError))
        else:
            result, error = decode_response(raw, decoder)
        invocation._complete(result, error)

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Stop the transport and decode workers, and an owned dispatcher.

        In-flight invocations whose responses already arrived are still
        delivered.  Calling it again has no effect.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._transport.close()
        finally:
            self._decode_pool.shutdown(wait=True)
            if self._owns_dispatcher and isinstance(self._dispatcher, ThreadDispatcher):
                self._dispatcher.close()

    def __enter__(self) -> WebServiceProxy:
        """Enter the context."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the context, closing the proxy."""
        self.close()
