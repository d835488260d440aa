"""Tests for kilo.codec.JsonCodec."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import pytest

from kilo.codec import JsonCodec


@dataclass
class _Event:
    name: str
    at: datetime
    tags: list[str] = field(default_factory=list)
    score: float | None = None


@dataclass
class _Batch:
    events: list[_Event]
    meta: dict[str, int]


class TestDumps:
    """Serialization."""

    def test_compact(self) -> None:
        """Output has no insignificant whitespace."""
        assert JsonCodec().dumps({"a": 1, "b": [1, 2]}) == b'{"a":1,"b":[1,2]}'

    def test_datetime_as_millis(self) -> None:
        """Datetimes are written as millisecond-epoch integers."""
        when = datetime(2024, 1, 1, 0, 0, 0, 5000, tzinfo=UTC)
        assert JsonCodec().dumps({"at": when}) == b'{"at":1704067200005}'

    def test_dataclass(self) -> None:
        """Dataclasses are written as objects, recursively."""
        event = _Event("launch", datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC), ["x"])
        assert json.loads(JsonCodec().dumps(event)) == {"name": "launch", "at": 1000, "tags": ["x"], "score": None}

    def test_sort_keys(self) -> None:
        """sort_keys orders object keys."""
        assert JsonCodec(sort_keys=True).dumps({"b": 1, "a": 2}) == b'{"a":2,"b":1}'

    def test_unsupported(self) -> None:
        """Unknown objects are rejected."""
        with pytest.raises(TypeError, match="not JSON serializable"):
            JsonCodec().dumps({"x": object()})


class TestLoads:
    """Deserialization and typed conversion."""

    def test_plain(self) -> None:
        """Without a result type, plain JSON values come back."""
        assert JsonCodec().loads(b'{"a": [1, "b", null]}') == {"a": [1, "b", None]}

    def test_dataclass(self) -> None:
        """Objects convert into dataclasses, with epoch-millis datetimes."""
        event = JsonCodec().loads(b'{"name": "launch", "at": 1700000000123, "tags": ["a"]}', _Event)
        assert event == _Event("launch", datetime(2023, 11, 14, 22, 13, 20, 123000, tzinfo=UTC), ["a"])

    def test_nested(self) -> None:
        """Lists and dicts of dataclasses are converted recursively."""
        batch = JsonCodec().loads(
            b'{"events": [{"name": "a", "at": 0, "score": 1}], "meta": {"count": 1}}',
            _Batch,
        )
        assert batch.events[0].at == datetime(1970, 1, 1, tzinfo=UTC)
        assert batch.events[0].score == 1.0
        assert isinstance(batch.events[0].score, float)
        assert batch.meta == {"count": 1}

    def test_missing_optional_field_uses_default(self) -> None:
        """Absent fields fall back to dataclass defaults."""
        event = JsonCodec().loads(b'{"name": "a", "at": 0}', _Event)
        assert event.tags == []
        assert event.score is None

    def test_missing_required_field(self) -> None:
        """Absent required fields raise ValueError."""
        with pytest.raises(ValueError, match="Cannot construct _Event"):
            JsonCodec().loads(b'{"name": "a"}', _Event)

    def test_invalid_json(self) -> None:
        """Malformed JSON raises ValueError."""
        with pytest.raises(ValueError):
            JsonCodec().loads(b"{nope")

    @pytest.mark.parametrize(
        ("value", "target"),
        [
            ("text", int),
            (True, int),
            ("1970", datetime),
            (True, datetime),
            ({"a": 1}, list[int]),
            ([1], dict[str, int]),
            (None, str),
        ],
        ids=["str-int", "bool-int", "str-datetime", "bool-datetime", "obj-list", "list-dict", "null-str"],
    )
    def test_mismatch(self, value: Any, target: Any) -> None:
        """Values that do not match the target type raise ValueError."""
        with pytest.raises(ValueError):
            JsonCodec().convert(value, target)

    def test_optional(self) -> None:
        """Optional targets accept null and the inner type."""
        codec = JsonCodec()
        assert codec.convert(None, int | None) is None
        assert codec.convert(3, int | None) == 3

    def test_any_passthrough(self) -> None:
        """Any returns the value unchanged."""
        value = {"x": [1, {"y": None}]}
        assert JsonCodec().convert(value, Any) is value
