# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""JSON formatter and setup helper for structured logging output.

Provides :class:`KiloJsonFormatter`, a :class:`logging.Formatter` subclass
that serializes log records as single-line JSON objects.  All ``extra``
fields attached to a record (for example the ``argument`` and ``filename``
fields on ``kilo.encoding`` warnings) are included automatically.

This module is **not** auto-imported by ``kilo``; import it explicitly::

    from kilo.logging_utils import KiloJsonFormatter, configure_logging
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

__all__ = ["KiloJsonFormatter", "configure_logging"]

# Attribute names every LogRecord has by default; anything else came from ``extra``.
_DEFAULT_RECORD_ATTRS: frozenset[str] = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()) | {
    "message",
    "asctime",
}

_RESERVED_KEYS: frozenset[str] = frozenset({"exception", "stack_info"})


class KiloJsonFormatter(logging.Formatter):
    """Single-line JSON formatter for kilo log records.

    Every object carries ``timestamp`` (UTC, ISO-8601 with milliseconds),
    ``level``, ``logger``, ``thread`` and ``message``.  The thread name tells
    the pipeline stages apart: ``kilo-transport`` for network I/O,
    ``kilo-decode_*`` for decoding and ``kilo-dispatch`` for result handlers.
    Structured ``extra`` fields such as ``invocation``, ``argument`` and
    ``filename`` follow; they cannot replace the standard fields.
    """

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        """Return the record time as UTC ISO-8601, or per *datefmt* if given."""
        when = datetime.fromtimestamp(record.created, tz=UTC)
        if datefmt:
            return when.strftime(datefmt)
        return when.isoformat(timespec="milliseconds")

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a single-line JSON string."""
        obj: dict[str, object] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _DEFAULT_RECORD_ATTRS and key not in obj and key not in _RESERVED_KEYS:
                obj[key] = value
        if record.exc_info and record.exc_info[1]:
            obj["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            obj["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(obj, default=str)


def configure_logging(
    level: int = logging.INFO,
    *,
    json_output: bool = False,
    wire: bool = False,
    stream: TextIO | None = None,
) -> logging.Handler:
    """Attach a stream handler to the ``kilo`` logger.

    Args:
        level: Level for the ``kilo`` logger.
        json_output: Use :class:`KiloJsonFormatter` instead of plain text.
        wire: Also enable DEBUG output from the ``kilo.wire`` loggers.
        stream: Destination; defaults to ``sys.stderr``.

    Returns:
        The installed handler, so callers can remove it again.

    """
    handler = logging.StreamHandler(stream or sys.stderr)
    if json_output:
        handler.setFormatter(KiloJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger("kilo")
    root.addHandler(handler)
    root.setLevel(level)
    if wire:
        logging.getLogger("kilo.wire").setLevel(logging.DEBUG)
    return handler
