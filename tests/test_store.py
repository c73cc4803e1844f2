"""Tests for perch.store — keyed data store and the ctx.data accessor."""

import asyncio

import pytest

from perch.errors import DataUpdateError
from perch.store import DataAccessor, DataStore


class TestGetOrPut:
    async def test_absent_key_stores_default(self) -> None:
        store = DataStore()
        assert await store.get_or_put("hits", 0) == 0
        assert store.peek("hits") == 0
        assert "hits" in store

    async def test_present_key_ignores_default(self) -> None:
        store = DataStore({"hits": 3})
        assert await store.get_or_put("hits", 0) == 3

    async def test_default_applied_once(self) -> None:
        store = DataStore()
        await store.get_or_put("items", [])
        assert await store.get_or_put("items", ["other"]) == []

    async def test_none_is_a_stored_value(self) -> None:
        store = DataStore()
        assert await store.get_or_put("maybe") is None
        assert "maybe" in store
        assert await store.get_or_put("maybe", 5) is None

    async def test_update_on_absent_key_stores_default(self) -> None:
        store = DataStore()
        result = await store.get_or_put("hits", 0, lambda n: n + 1)
        assert result == 0

    async def test_sync_update(self) -> None:
        store = DataStore({"hits": 1})
        assert await store.get_or_put("hits", 0, lambda n: n + 1) == 2
        assert store.peek("hits") == 2

    async def test_async_update(self) -> None:
        store = DataStore({"hits": 1})

        async def double(n: int) -> int:
            await asyncio.sleep(0)
            return n * 2

        assert await store.get_or_put("hits", 0, double) == 2
        assert await store.get_or_put("hits", 0, double) == 4

    async def test_failed_update_leaves_value(self) -> None:
        store = DataStore({"hits": 7})

        def boom(n: int) -> int:
            raise ValueError("nope")

        with pytest.raises(DataUpdateError, match="nope") as exc_info:
            await store.get_or_put("hits", 0, boom)
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert exc_info.value.key == "hits"
        assert store.peek("hits") == 7

    async def test_failed_async_update_leaves_value(self) -> None:
        store = DataStore({"hits": 7})

        async def boom(n: int) -> int:
            raise RuntimeError("later")

        with pytest.raises(DataUpdateError):
            await store.get_or_put("hits", 0, boom)
        assert store.peek("hits") == 7

    async def test_readers_see_old_value_during_update(self) -> None:
        store = DataStore({"n": 1})
        gate = asyncio.Event()

        async def slow(n: int) -> int:
            await gate.wait()
            return n + 1

        task = asyncio.create_task(store.get_or_put("n", 0, slow))
        await asyncio.sleep(0)
        assert await store.get_or_put("n") == 1
        gate.set()
        assert await task == 2
        assert await store.get_or_put("n") == 2

    async def test_overlapping_updates_last_writer_wins(self) -> None:
        store = DataStore({"n": 0})
        gate = asyncio.Event()

        async def slow(n: int) -> int:
            await gate.wait()
            return n + 1

        def fast(n: int) -> int:
            return n + 10

        task = asyncio.create_task(store.get_or_put("n", 0, slow))
        await asyncio.sleep(0)
        assert await store.get_or_put("n", 0, fast) == 10
        gate.set()
        # The slow update read 0 before the fast one wrote
        assert await task == 1
        assert store.peek("n") == 1


class TestInspection:
    def test_initial_contents(self) -> None:
        store = DataStore({"a": 1, "b": 2})
        assert len(store) == 2
        assert sorted(store) == ["a", "b"]

    def test_peek_does_not_initialise(self) -> None:
        store = DataStore()
        assert store.peek("missing", "fallback") == "fallback"
        assert "missing" not in store

    def test_snapshot_is_a_copy(self) -> None:
        store = DataStore({"a": 1})
        snap = store.snapshot()
        snap["b"] = 2
        assert "b" not in store

    def test_initial_mapping_is_copied(self) -> None:
        initial = {"a": 1}
        store = DataStore(initial)
        initial["b"] = 2
        assert "b" not in store

    def test_repr(self) -> None:
        assert repr(DataStore({"a": 1})) == "<DataStore keys=1>"


class TestDataAccessor:
    async def test_delegates_to_store(self) -> None:
        store = DataStore()
        data = DataAccessor(store)
        assert await data("hits", 0) == 0
        assert await data("hits", 0, lambda n: n + 1) == 1
        assert store.peek("hits") == 1

    async def test_accessors_share_one_store(self) -> None:
        store = DataStore()
        await DataAccessor(store)("shared", "value")
        assert await DataAccessor(store)("shared") == "value"
