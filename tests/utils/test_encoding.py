"""Unit tests for URI percent-encoding helpers."""

import pytest

from callforge.utils.encoding import decode, encode_path, encode_query


class TestEncodePath:
    """Path values keep sub-delimiters and optionally slashes."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("plain", "plain"),
            ("a b", "a%20b"),
            ("a/b", "a/b"),
            ("a;b=c", "a;b=c"),
            ("50%", "50%25"),
            ("ü", "%C3%BC"),
            ("a?b#c", "a%3Fb%23c"),
        ],
    )
    def test_decode_slash(self, value: str, expected: str) -> None:
        assert encode_path(value) == expected

    def test_slash_encoded_when_not_decoding(self) -> None:
        assert encode_path("a/b", decode_slash=False) == "a%2Fb"


class TestEncodeQuery:
    """Query values must not break the query string."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("a b", "a%20b"),
            ("a&b", "a%26b"),
            ("a=b", "a%3Db"),
            ("a+b", "a%2Bb"),
            ("a#b", "a%23b"),
            ("a/b?c", "a/b?c"),
        ],
    )
    def test_encode_query(self, value: str, expected: str) -> None:
        assert encode_query(value) == expected


def test_decode() -> None:
    assert decode("a%20b%2Fc") == "a b/c"
