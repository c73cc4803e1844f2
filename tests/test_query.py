"""Tests for perch.http.query — immutable QueryParams."""

import pytest

from perch.http.query import QueryParams


class TestQueryParams:
    def test_getitem(self) -> None:
        q = QueryParams(b"q=hello&page=2")
        assert q["q"] == "hello"
        assert q["page"] == "2"

    def test_missing_key_raises(self) -> None:
        with pytest.raises(KeyError):
            QueryParams(b"q=hello")["missing"]

    def test_get_with_default(self) -> None:
        q = QueryParams(b"q=hello")
        assert q.get("missing") is None
        assert q.get("missing", "fallback") == "fallback"

    def test_get_list(self) -> None:
        q = QueryParams(b"tag=python&tag=rust")
        assert q.get_list("tag") == ["python", "rust"]
        assert q.get_list("missing") == []

    def test_get_int(self) -> None:
        q = QueryParams(b"limit=3&offset=abc")
        assert q.get_int("limit") == 3
        assert q.get_int("offset") is None
        assert q.get_int("missing", 10) == 10

    def test_blank_value_preserved(self) -> None:
        assert QueryParams(b"flag=")["flag"] == ""

    def test_empty(self) -> None:
        q = QueryParams(b"")
        assert len(q) == 0
        assert q.raw == b""
