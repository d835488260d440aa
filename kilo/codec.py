"""JSON codec with millisecond-epoch dates.

Dates travel over the wire as integer milliseconds since the epoch (not
ISO-8601).  :class:`JsonCodec` wraps the standard ``json`` module with that
convention in both directions and can decode into dataclasses, using the
field annotations to rebuild nested dataclasses, lists, and datetimes.
"""

from __future__ import annotations

import dataclasses
import json
import types
from datetime import UTC, datetime, timedelta
from typing import Any, Final, TypeVar, Union, get_args, get_origin, get_type_hints

from kilo.arguments import to_millis

__all__ = ["JsonCodec"]

T = TypeVar("T")

_EPOCH: Final = datetime(1970, 1, 1, tzinfo=UTC)


def _default(obj: object) -> object:
    if isinstance(obj, datetime):
        return to_millis(obj)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _from_millis(value: object) -> datetime:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"Expected milliseconds since the epoch, got {value!r}")
    return _EPOCH + timedelta(milliseconds=value)


class JsonCodec:
    """JSON encoder/decoder configured for millisecond-epoch dates."""

    __slots__ = ("_sort_keys",)

    def __init__(self, *, sort_keys: bool = False) -> None:
        """Initialize the codec.

        Args:
            sort_keys: Emit object keys in sorted order.

        """
        self._sort_keys = sort_keys

    def dumps(self, obj: object) -> bytes:
        """Serialize *obj* to UTF-8 JSON; datetimes become epoch milliseconds."""
        return json.dumps(obj, default=_default, sort_keys=self._sort_keys, separators=(",", ":")).encode("utf-8")

    def loads(self, content: bytes | str, result_type: type[T] | None = None) -> T | Any:
        """Parse JSON content, optionally converting it to *result_type*.

        Args:
            content: JSON text.
            result_type: Target type, e.g. a dataclass, ``list[Item]``, or
                ``datetime``.  ``None`` returns plain JSON values.

        Returns:
            The decoded value.

        Raises:
            ValueError: If the content is not valid JSON or does not match
                *result_type*.

        """
        value = json.loads(content)
        if result_type is None:
            return value
        return self.convert(value, result_type)

    def convert(self, value: object, target: Any) -> Any:
        """Convert a plain JSON value to *target* (a type or type annotation).

        Raises:
            ValueError: If the value does not match the target type.

        """
        if target is Any or target is object:
            return value

        origin = get_origin(target)
        if origin is Union or origin is types.UnionType:
            args = get_args(target)
            if value is None and type(None) in args:
                return None
            errors: list[str] = []
            for arg in args:
                if arg is type(None):
                    continue
                try:
                    return self.convert(value, arg)
                except ValueError as exc:
                    errors.append(str(exc))
            raise ValueError(f"No union member of {target} matches {value!r}: {'; '.join(errors)}")
        if origin is list:
            (item_type,) = get_args(target) or (Any,)
            if not isinstance(value, list):
                raise ValueError(f"Expected a JSON array, got {type(value).__name__}")
            return [self.convert(item, item_type) for item in value]
        if origin is dict:
            _, value_type = get_args(target) or (str, Any)
            if not isinstance(value, dict):
                raise ValueError(f"Expected a JSON object, got {type(value).__name__}")
            return {k: self.convert(v, value_type) for k, v in value.items()}

        if target is datetime:
            return _from_millis(value)
        if dataclasses.is_dataclass(target) and isinstance(target, type):
            return self._convert_dataclass(value, target)
        if target is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        if isinstance(target, type) and isinstance(value, target):
            if target is int and isinstance(value, bool):
                raise ValueError(f"Expected int, got {value!r}")
            return value
        if target is type(None) and value is None:
            return None
        raise ValueError(f"Expected {getattr(target, '__name__', target)}, got {type(value).__name__}")

    def _convert_dataclass(self, value: object, target: type[Any]) -> Any:
        if not isinstance(value, dict):
            raise ValueError(f"Expected a JSON object for {target.__name__}, got {type(value).__name__}")
        hints = get_type_hints(target)
        kwargs: dict[str, Any] = {}
        for f in dataclasses.fields(target):
            if not f.init or f.name not in value:
                continue
            kwargs[f.name] = self.convert(value[f.name], hints.get(f.name, Any))
        try:
            return target(**kwargs)
        except TypeError as exc:
            raise ValueError(f"Cannot construct {target.__name__}: {exc}") from exc
