"""Command-line interface for invoking web service methods.

Usage::

    kilo --url https://example.com/api/ call GET items tags=a tags=b
    kilo --url https://example.com/api/ call POST upload --multipart file=@photo.jpg title=Holiday
    kilo --url https://example.com/api/ call PUT items/1 --data-file item.json --content-type application/json

Repeating a key sends a list value; ``key=@path`` attaches a file.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any

import httpx
import typer

from kilo.arguments import FileRef
from kilo.config import ProxyConfig
from kilo.dispatch import ManualDispatcher
from kilo.errors import HttpError, WebServiceError
from kilo.logging_utils import configure_logging
from kilo.proxy import WebServiceProxy
from kilo.request import Encoding, Method

# ---------------------------------------------------------------------------
# CLI config
# ---------------------------------------------------------------------------


@dataclass
class _CliConfig:
    """Holds resolved CLI options.

    Embedding applications can pass a preset instance as the click ``obj`` to
    supply a custom httpx transport; the global options fill in the rest.
    """

    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = 60.0
    verbose: bool = False
    transport: httpx.AsyncBaseTransport | None = None
    """httpx transport for the proxy; ``None`` uses the network."""


app = typer.Typer(
    name="kilo",
    help="Invoke REST web service methods.",
    add_completion=False,
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def _main(
    ctx: typer.Context,
    url: Annotated[str, typer.Option("--url", "-u", help="Server base URL")],
    header: Annotated[list[str] | None, typer.Option("--header", "-H", help="Header as 'Name: value'")] = None,
    timeout: Annotated[float, typer.Option("--timeout", "-t", help="Request timeout in seconds")] = 60.0,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log requests and responses on stderr")] = False,
) -> None:
    """Configure the server and request options."""
    headers: dict[str, str] = {}
    for item in header or []:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Expected 'Name: value', got: {item}")
        headers[name.strip()] = value.strip()
    config = ctx.ensure_object(_CliConfig)
    config.url = url
    config.headers = headers
    config.timeout = timeout
    config.verbose = verbose


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_arguments(args: list[str]) -> dict[str, object]:
    """Parse ``key=value`` / ``key=@path`` args; repeated keys become lists.

    Raises:
        typer.BadParameter: If an arg has no ``=``.

    """
    result: dict[str, object] = {}
    for arg in args:
        key, sep, raw = arg.partition("=")
        if not sep:
            raise typer.BadParameter(f"Expected key=value, got: {arg}")
        value: object = FileRef.from_path(raw[1:]) if raw.startswith("@") else raw
        if key in result:
            existing = result[key]
            result[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            result[key] = value
    return result


def _print_result(result: Any) -> None:
    if result is None:
        return
    if isinstance(result, bytes):
        typer.echo(result, nl=False)
    elif isinstance(result, str):
        typer.echo(result)
    else:
        typer.echo(json.dumps(result, indent=2, default=str))


def _emit_error(error: WebServiceError) -> None:
    """Write an invocation error to stderr as JSON."""
    err: dict[str, object] = {"type": type(error).__name__, "message": str(error)}
    if isinstance(error, HttpError):
        err["status_code"] = error.status_code
        err["message"] = error.message
    typer.echo(json.dumps({"error": err}, default=str), err=True)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def call(
    ctx: typer.Context,
    method: Annotated[Method, typer.Argument(help="HTTP method", case_sensitive=False)],
    path: Annotated[str, typer.Argument(help="Path relative to the server URL")],
    args: Annotated[list[str] | None, typer.Argument(help="key=value arguments")] = None,
    multipart: Annotated[bool, typer.Option("--multipart", "-m", help="Encode POST arguments as multipart")] = False,
    data_file: Annotated[
        Path | None, typer.Option("--data-file", "-d", help="Send this file as the request body")
    ] = None,
    content_type: Annotated[str | None, typer.Option("--content-type", help="Content type of --data-file")] = None,
) -> None:
    """Invoke a web service method and print the result."""
    config: _CliConfig = ctx.obj
    if config.verbose:
        configure_logging(logging.DEBUG, wire=True)

    try:
        arguments = _parse_arguments(args or [])
        content = data_file.read_bytes() if data_file is not None else None
    except OSError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    dispatcher = ManualDispatcher()
    with WebServiceProxy(
        config.url,
        config=ProxyConfig(timeout=config.timeout),
        dispatcher=dispatcher,
        transport=config.transport,
    ) as proxy:
        proxy.headers.update(config.headers)
        if multipart:
            proxy.encoding = Encoding.MULTIPART_FORM_DATA
        try:
            invocation = proxy.invoke(method, path, arguments, content, content_type=content_type)
        except (TypeError, ValueError) as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from None
        dispatcher.run_until(invocation.done)
        error = invocation.exception()

    if error is not None:
        _emit_error(error)
        raise typer.Exit(1)
    _print_result(invocation.result())
