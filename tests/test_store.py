"""Tests for the store adapters."""

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core import store as store_module
from app.core.errors import StorageError
from app.core.store import MemoryStore, RedisStore, close_store, get_store

pytestmark = pytest.mark.anyio


class TestMemoryStore:
    async def test_set_if_absent_only_first_write(self):
        store = MemoryStore()
        assert await store.set_if_absent("k", "one") is True
        assert await store.set_if_absent("k", "two") is False
        assert await store.get("k") == "one"

    async def test_increment_from_missing(self):
        store = MemoryStore()
        assert await store.increment_by("counter", 1) == 1
        assert await store.increment_by("counter", 2) == 3
        assert await store.get("counter") == "3"

    async def test_hash_increment_with_total(self):
        store = MemoryStore()
        await store.hash_increment_with_total("h", ["a", "b"], "h:total")
        await store.hash_increment_with_total("h", ["a"], "h:total")
        assert await store.hash_get_all("h") == {"a": "2", "b": "1"}
        assert await store.get("h:total") == "2"

    async def test_exists_covers_all_kinds(self):
        store = MemoryStore()
        assert await store.exists("x") is False
        await store.hash_set("x", {"f": "0"})
        assert await store.exists("x") is True

    async def test_sorted_set_descending(self):
        store = MemoryStore()
        await store.sorted_set_add("z", "low", 10)
        await store.sorted_set_add("z", "high", 90)
        await store.sorted_set_add("z", "mid", 50)
        assert await store.sorted_set_range("z", 0, -1) == [("high", 90.0), ("mid", 50.0), ("low", 10.0)]
        assert await store.sorted_set_range("z", 0, 1) == [("high", 90.0), ("mid", 50.0)]
        assert await store.sorted_set_rank("z", "low") == 2
        assert await store.sorted_set_rank("z", "ghost") is None


class _BrokenRedis:
    async def get(self, key):
        raise RedisConnectionError("connection refused")


class TestRedisStore:
    async def test_redis_errors_become_storage_errors(self):
        store = RedisStore(_BrokenRedis())
        with pytest.raises(StorageError):
            await store.get("anything")


class TestGetStore:
    async def test_concurrent_first_calls_share_one_client(self, monkeypatch):
        created = []

        async def slow_connect():
            await asyncio.sleep(0.01)
            created.append(MemoryStore())
            return created[-1]

        monkeypatch.setattr(store_module, "_store", None)
        monkeypatch.setattr(store_module, "connect_redis", slow_connect)
        monkeypatch.setattr(store_module.settings, "STORE_BACKEND", "redis")

        first, second = await asyncio.gather(get_store(), get_store())

        assert first is second
        assert len(created) == 1
        await close_store()
