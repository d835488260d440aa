"""Shared test fixtures for kilo tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from typing import Any

import falcon
import falcon.asgi
import httpx
import pytest

from kilo import ThreadDispatcher, WebServiceProxy

BASE_URL = "http://testserver/api/"

MockHandler = Callable[[httpx.Request], Any]
"""Sync or async handler accepted by ``httpx.MockTransport``."""

ProxyFactory = Callable[..., WebServiceProxy]
"""Type alias for the ``make_proxy`` fixture return type."""


# ---------------------------------------------------------------------------
# Falcon ASGI test service
# ---------------------------------------------------------------------------


class _EchoResource:
    """Echoes the request line, query parameters, and body as JSON."""

    async def _echo(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        body = await req.stream.read()
        resp.media = {
            "method": req.method,
            "path": req.path,
            "query_string": req.query_string,
            "params": req.params,
            "content_type": req.content_type,
            "body": body.decode("latin-1"),
        }

    on_get = _echo
    on_post = _echo
    on_put = _echo
    on_patch = _echo
    on_delete = _echo


class _FormResource:
    """Returns the parsed urlencoded form fields."""

    async def on_post(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        resp.media = {"fields": await req.get_media()}


class _UploadResource:
    """Returns a summary of each multipart part."""

    async def on_post(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        form = await req.get_media()
        parts: list[dict[str, object]] = []
        async for part in form:
            data = await part.get_data()
            parts.append(
                {
                    "name": part.name,
                    "filename": part.filename,
                    "content_type": part.content_type,
                    "size": len(data),
                    "text": None if part.filename else data.decode("utf-8"),
                }
            )
        resp.media = {"parts": parts}


class _StatusResource:
    """Responds with the requested status code, as text or JSON."""

    async def on_get(self, req: falcon.asgi.Request, resp: falcon.asgi.Response, code: int) -> None:
        resp.status = code
        if req.get_param("kind") == "text":
            resp.content_type = falcon.MEDIA_TEXT
            resp.text = req.get_param("message") or "boom"
        else:
            resp.media = {"error": "details withheld"}


class _EventResource:
    """Returns an event with a millisecond-epoch timestamp."""

    async def on_get(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        resp.media = {"name": "launch", "at": 1700000000123, "tags": ["a", "b"]}


class _SlowResource:
    """Never answers within a test's lifetime."""

    async def on_get(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        await asyncio.sleep(30)
        resp.media = {"late": True}


def make_app() -> falcon.asgi.App:
    """Build the ASGI test service."""
    app = falcon.asgi.App()
    app.add_route("/api/echo", _EchoResource())
    app.add_route("/api/form", _FormResource())
    app.add_route("/api/upload", _UploadResource())
    app.add_route("/api/status/{code:int}", _StatusResource())
    app.add_route("/api/event", _EventResource())
    app.add_route("/api/slow", _SlowResource())
    return app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def asgi_app() -> falcon.asgi.App:
    """A fresh instance of the falcon test service."""
    return make_app()


@pytest.fixture
def dispatcher() -> Iterator[ThreadDispatcher]:
    """A dispatch thread, stopped after the test."""
    with ThreadDispatcher(name="test-dispatch") as d:
        yield d


@pytest.fixture
def make_proxy(dispatcher: ThreadDispatcher) -> Iterator[ProxyFactory]:
    """Factory for proxies backed by ``httpx.MockTransport``; all are closed after the test."""
    proxies: list[WebServiceProxy] = []

    def _make(handler: MockHandler, **kwargs: Any) -> WebServiceProxy:
        kwargs.setdefault("dispatcher", dispatcher)
        proxy = WebServiceProxy(BASE_URL, transport=httpx.MockTransport(handler), **kwargs)
        proxies.append(proxy)
        return proxy

    yield _make
    for proxy in proxies:
        proxy.close()


@pytest.fixture
def asgi_proxy(dispatcher: ThreadDispatcher, asgi_app: falcon.asgi.App) -> Iterator[WebServiceProxy]:
    """Proxy wired to the falcon test service through ``httpx.ASGITransport``."""
    with WebServiceProxy(
        BASE_URL,
        dispatcher=dispatcher,
        transport=httpx.ASGITransport(app=asgi_app),
    ) as proxy:
        yield proxy
