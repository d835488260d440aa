"""Tests for kilo.encoding — query, form, and multipart encoders."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from urllib.parse import parse_qsl

import pytest

from kilo.arguments import FileRef
from kilo.encoding import encode_form_body, encode_multipart_body, encode_query, new_boundary, url_encode
from kilo.errors import EncodingError

# ---------------------------------------------------------------------------
# url_encode
# ---------------------------------------------------------------------------


class TestUrlEncode:
    """Tests for query-component percent-encoding."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("plain", "plain"),
            ("hello world", "hello%20world"),
            ("a+b", "a%2Bb"),
            ("a&b=c", "a%26b%3Dc"),
            ("frag#ment", "frag%23ment"),
            ("café", "caf%C3%A9"),
            ("~-._", "~-._"),
            ("100%", "100%25"),
        ],
        ids=["plain", "space", "plus", "separators", "hash", "unicode", "unreserved", "percent"],
    )
    def test_encoding(self, text: str, expected: str) -> None:
        """Characters are escaped for use in a query component."""
        assert url_encode(text) == expected

    def test_no_literal_plus_in_output(self) -> None:
        """A literal ``+`` never survives encoding."""
        assert "+" not in url_encode("1+1=2 +x")


# ---------------------------------------------------------------------------
# encode_query / encode_form_body
# ---------------------------------------------------------------------------


class TestEncodeQuery:
    """Tests for query-string encoding."""

    def test_scalars(self) -> None:
        """Strings, numbers, and booleans become key=value pairs."""
        query = encode_query({"name": "kilo", "count": 3, "ratio": 0.5, "flag": True, "off": False})
        assert query == "name=kilo&count=3&ratio=0.5&flag=true&off=false"

    def test_list_becomes_repeated_keys(self) -> None:
        """A list produces one occurrence per element, in order."""
        assert encode_query({"strings": ["a", "b", "c"]}) == "strings=a&strings=b&strings=c"

    def test_timestamp_is_millis(self) -> None:
        """Datetimes encode as their millisecond-epoch integer."""
        when = datetime(2024, 1, 1, tzinfo=UTC)
        assert encode_query({"date": when}) == "date=1704067200000"

    def test_timestamp_list(self) -> None:
        """Datetimes inside lists are converted too."""
        dates = [datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC), datetime(1970, 1, 1, 0, 0, 2, tzinfo=UTC)]
        assert encode_query({"dates": dates}) == "dates=1000&dates=2000"

    def test_null_absent(self) -> None:
        """A null argument leaves no trace in the output."""
        assert encode_query({"missing": None, "present": "x"}) == "present=x"
        assert "missing" not in encode_query({"missing": None})

    def test_null_list_elements_absent(self) -> None:
        """Null list elements are skipped without empty pairs."""
        assert encode_query({"l": ["x", None, "y"]}) == "l=x&l=y"

    def test_blank_key_dropped(self) -> None:
        """Arguments with blank keys are dropped."""
        assert encode_query({"": "a", "  ": "b", "k": "c"}) == "k=c"

    def test_empty(self) -> None:
        """Nothing to encode gives an empty string."""
        assert encode_query({}) == ""
        assert encode_query({"only": None}) == ""

    def test_keys_are_encoded(self) -> None:
        """Keys are percent-encoded like values."""
        assert encode_query({"a b+c": "v"}) == "a%20b%2Bc=v"

    def test_round_trip(self) -> None:
        """Parsing the output as a query string yields the original pairs."""
        arguments = {"text": "hello world & more", "plus": "1+1=2", "unicode": "日本", "num": 7}
        parsed = parse_qsl(encode_query(arguments), keep_blank_values=True)
        assert parsed == [("text", "hello world & more"), ("plus", "1+1=2"), ("unicode", "日本"), ("num", "7")]

    def test_deterministic(self) -> None:
        """Encoding the same input twice gives the same output."""
        arguments = {"b": [1, 2], "a": "x", "c": True}
        assert encode_query(arguments) == encode_query(arguments)

    def test_form_body_matches_query(self) -> None:
        """The form body is the UTF-8 encoded query string."""
        arguments = {"name": "José", "tags": ["x", "y"]}
        assert encode_form_body(arguments) == encode_query(arguments).encode("utf-8")


# ---------------------------------------------------------------------------
# encode_multipart_body
# ---------------------------------------------------------------------------


class TestEncodeMultipart:
    """Tests for multipart/form-data encoding."""

    def test_exact_layout(self) -> None:
        """Text and file parts are written in the documented layout."""
        body = encode_multipart_body(
            {"text": "hello", "file": FileRef.from_bytes(b"\x00\x01abc", "data.bin")},
            "B",
        )
        assert body == (
            b'--B\r\nContent-Disposition: form-data; name="text"\r\n\r\nhello\r\n'
            b'--B\r\nContent-Disposition: form-data; name="file"; filename="data.bin"\r\n'
            b"Content-Type: application/octet-stream\r\n\r\n\x00\x01abc\r\n"
            b"--B--\r\n"
        )

    def test_empty_arguments(self) -> None:
        """With no occurrences only the closing boundary is written."""
        assert encode_multipart_body({}, "B") == b"--B--\r\n"

    def test_list_one_part_per_element(self) -> None:
        """Each list element becomes its own part."""
        body = encode_multipart_body({"n": [1, 2, 3]}, "B")
        assert body.count(b'name="n"') == 3
        assert b"\r\n\r\n1\r\n" in body
        assert b"\r\n\r\n3\r\n" in body

    def test_null_has_no_part(self) -> None:
        """Null values produce no part at all."""
        body = encode_multipart_body({"a": None, "b": "x"}, "B")
        assert b'name="a"' not in body
        assert body.count(b"--B\r\n") == 1

    def test_timestamp_and_boolean(self) -> None:
        """Scalars are stringified the same way as in queries."""
        body = encode_multipart_body({"when": datetime(1970, 1, 1, 0, 0, 5, tzinfo=UTC), "ok": True}, "B")
        assert b"\r\n\r\n5000\r\n" in body
        assert b"\r\n\r\ntrue\r\n" in body

    def test_file_byte_count(self, tmp_path: Path) -> None:
        """A file part carries exactly the file's bytes."""
        data = bytes(range(256)) * 40
        path = tmp_path / "blob.bin"
        path.write_bytes(data)
        boundary = "XYZ"
        body = encode_multipart_body({"upload": FileRef.from_path(path)}, boundary)

        header_end = body.index(b"\r\n\r\n") + 4
        part_end = body.index(b"\r\n--XYZ--\r\n")
        assert b'filename="blob.bin"' in body[:header_end]
        assert b"Content-Type: application/octet-stream" in body[:header_end]
        assert part_end - header_end == len(data)
        assert body[header_end:part_end] == data

    def test_unreadable_file_sends_empty_part(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """A missing file yields an empty part and a warning, not an error."""
        ref = FileRef.from_path(tmp_path / "missing.bin")
        with caplog.at_level(logging.WARNING, logger="kilo.encoding"):
            body = encode_multipart_body({"f": ref}, "B")
        assert body == (
            b'--B\r\nContent-Disposition: form-data; name="f"; filename="missing.bin"\r\n'
            b"Content-Type: application/octet-stream\r\n\r\n\r\n--B--\r\n"
        )
        assert any("missing.bin" in r.getMessage() for r in caplog.records)

    def test_unreadable_file_strict(self, tmp_path: Path) -> None:
        """With strict_files a missing file raises EncodingError."""
        ref = FileRef.from_path(tmp_path / "missing.bin")
        with pytest.raises(EncodingError, match="missing.bin"):
            encode_multipart_body({"f": ref}, "B", strict_files=True)

    def test_part_name_is_percent_encoded(self) -> None:
        """Part names use the percent-encoded key, keeping quotes out of the header."""
        body = encode_multipart_body({'we"ird key': "v"}, "B")
        assert b'name="we%22ird%20key"' in body

    def test_filename_cannot_inject_headers(self) -> None:
        """Quotes and line breaks in a file name are percent-encoded."""
        ref = FileRef.from_bytes(b"x", 'a"; name="evil\r\nX: y')
        body = encode_multipart_body({"f": ref}, "B")
        assert b'name="f"; filename="a%22;%20name%3D%22evil%0D%0AX:%20y"\r\n' in body
        assert b'name="evil"' not in body
        assert b"\r\nX:" not in body


class TestNewBoundary:
    """Tests for boundary generation."""

    def test_unique(self) -> None:
        """Each call returns a fresh token."""
        assert len({new_boundary() for _ in range(100)}) == 100

    def test_token_is_header_safe(self) -> None:
        """Boundaries contain only characters valid in a header parameter."""
        boundary = new_boundary()
        assert boundary.replace("-", "").isalnum()
        assert len(boundary) >= 32
