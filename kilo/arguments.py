"""Argument value model for web service invocations.

Request arguments are held as a closed set of tagged variants so the encoders
can ``match`` on them exhaustively.  Native Python values are converted once,
at the boundary, by :func:`to_argument`; anything that does not map onto a
variant is rejected there with ``TypeError``.

KEY CLASSES
-----------
NullArg, StringArg, NumberArg, BooleanArg, TimestampArg, FileArg : scalars
ListArg : ordered multi-value argument (elements are never lists)
FileRef : byte source plus display name for file attachments

"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

__all__ = [
    "ArgumentMap",
    "ArgumentValue",
    "BooleanArg",
    "ByteSource",
    "BytesSource",
    "FileArg",
    "FileRef",
    "ListArg",
    "NullArg",
    "NumberArg",
    "ScalarArg",
    "StringArg",
    "TimestampArg",
    "iter_occurrences",
    "normalize_arguments",
    "to_argument",
    "to_millis",
]

_EPOCH: Final = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS: Final = timedelta(milliseconds=1)


# ---------------------------------------------------------------------------
# Byte sources
# ---------------------------------------------------------------------------


@runtime_checkable
class ByteSource(Protocol):
    """Anything that can produce the bytes of a file attachment.

    ``pathlib.Path`` satisfies this protocol.
    """

    def read_bytes(self) -> bytes:
        """Return the complete content."""
        ...


@dataclass(frozen=True)
class BytesSource:
    """In-memory byte source."""

    data: bytes

    def read_bytes(self) -> bytes:
        """Return the wrapped bytes."""
        return self.data


@dataclass(frozen=True)
class FileRef:
    """Reference to a file attachment.

    Attributes:
        source: Where the content is read from at encode time.
        name: File name reported in the multipart ``filename`` parameter.

    """

    source: ByteSource
    name: str

    @classmethod
    def from_path(cls, path: str | Path) -> FileRef:
        """Reference a file on disk, named after its last path component."""
        p = Path(path)
        return cls(p, p.name)

    @classmethod
    def from_bytes(cls, data: bytes, name: str) -> FileRef:
        """Reference in-memory content under the given file name."""
        return cls(BytesSource(data), name)


# ---------------------------------------------------------------------------
# Argument variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NullArg:
    """Absent value; never appears in encoded output."""


@dataclass(frozen=True)
class StringArg:
    """Text value."""

    value: str


@dataclass(frozen=True)
class NumberArg:
    """Integer or floating-point value."""

    value: int | float


@dataclass(frozen=True)
class BooleanArg:
    """Boolean value, encoded as ``true`` / ``false``."""

    value: bool


@dataclass(frozen=True)
class TimestampArg:
    """Point in time, held as integer milliseconds since the epoch."""

    millis: int


@dataclass(frozen=True)
class FileArg:
    """File attachment (only meaningful for multipart bodies)."""

    ref: FileRef


ScalarArg = NullArg | StringArg | NumberArg | BooleanArg | TimestampArg | FileArg


@dataclass(frozen=True)
class ListArg:
    """Multi-valued argument; each element becomes its own occurrence."""

    items: tuple[ScalarArg, ...]


ArgumentValue = ScalarArg | ListArg
ArgumentMap = dict[str, ArgumentValue]

_NULL: Final = NullArg()


# ---------------------------------------------------------------------------
# Boundary conversion
# ---------------------------------------------------------------------------


def to_millis(value: datetime) -> int:
    """Convert a datetime to integer milliseconds since the epoch.

    Naive datetimes are interpreted in the local time zone.
    """
    if value.tzinfo is None:
        value = value.astimezone()
    return (value - _EPOCH) // _ONE_MS


def _to_scalar(value: object) -> ScalarArg:
    match value:
        case None:
            return _NULL
        case NullArg() | StringArg() | NumberArg() | BooleanArg() | TimestampArg() | FileArg():
            return value
        case bool():
            return BooleanArg(value)
        case int() | float():
            return NumberArg(value)
        case str():
            return StringArg(value)
        case datetime():
            return TimestampArg(to_millis(value))
        case FileRef():
            return FileArg(value)
        case Path():
            return FileArg(FileRef.from_path(value))
        case ListArg() | list() | tuple():
            raise TypeError("List arguments cannot contain nested lists")
        case _:
            raise TypeError(f"Unsupported argument type: {type(value).__name__}")


def to_argument(value: object) -> ArgumentValue:
    """Convert a native Python value to an :data:`ArgumentValue`.

    Args:
        value: ``None``, ``str``, ``int``, ``float``, ``bool``, ``datetime``,
            :class:`FileRef`, ``pathlib.Path``, a list/tuple of those, or an
            already-converted variant.

    Returns:
        The tagged argument value.

    Raises:
        TypeError: If the value (or a list element) has an unsupported type,
            or a list contains another list.

    """
    if isinstance(value, ListArg):
        for item in value.items:
            _to_scalar(item)
        return value
    if isinstance(value, list | tuple):
        return ListArg(tuple(_to_scalar(item) for item in value))
    return _to_scalar(value)


def normalize_arguments(arguments: Mapping[str, object] | None) -> ArgumentMap:
    """Convert a mapping of native values into an :data:`ArgumentMap`.

    Keys that are empty after trimming whitespace are dropped.  Insertion
    order is preserved so repeated encodings of the same input are identical.

    Raises:
        TypeError: If a key is not a string or a value is unsupported.

    """
    result: ArgumentMap = {}
    if not arguments:
        return result
    for key, value in arguments.items():
        if not isinstance(key, str):
            raise TypeError(f"Argument keys must be strings, got {type(key).__name__}")
        if not key.strip():
            continue
        result[key] = to_argument(value)
    return result


def iter_occurrences(arguments: ArgumentMap) -> Iterator[tuple[str, ScalarArg]]:
    """Expand each argument into ``(key, scalar)`` occurrences.

    Lists yield one occurrence per element in list order; ``NullArg``
    occurrences are skipped entirely.
    """
    for key, value in arguments.items():
        items: Iterable[ScalarArg] = value.items if isinstance(value, ListArg) else (value,)
        for item in items:
            if isinstance(item, NullArg):
                continue
            yield key, item
