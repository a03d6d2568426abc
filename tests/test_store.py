"""
Key-Value Store Tests

Validates the in-memory backend's Redis semantics (TTL, counters, lists,
glob keys) and backend selection from settings.
"""

import time

import pytest

from ai_router.cache.store import InMemoryStore, RedisStore, get_store

from tests.fixtures import make_settings


class TestInMemoryStrings:
    """String and counter commands."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, store):
        await store.set("k", "v")

        assert await store.get("k") == "v"
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_setex_expires(self, store):
        """Values written with setex disappear after their TTL."""
        await store.setex("k", 10, "v")
        assert await store.get("k") == "v"

        store._data["k"].expires_at = time.monotonic() - 1

        assert await store.get("k") is None
        assert await store.keys("*") == []

    @pytest.mark.asyncio
    async def test_incrby_from_missing(self, store):
        assert await store.incrby("n") == 1
        assert await store.incrby("n", 5) == 6
        assert await store.get("n") == "6"

    @pytest.mark.asyncio
    async def test_incrbyfloat_accumulates(self, store):
        await store.incrbyfloat("f", 0.25)
        total = await store.incrbyfloat("f", 0.5)

        assert total == pytest.approx(0.75)
        assert float(await store.get("f")) == pytest.approx(0.75)

    @pytest.mark.asyncio
    async def test_increment_keeps_ttl(self, store):
        """Incrementing does not clear an existing expiry."""
        await store.incrby("n")
        assert await store.expire("n", 5) is True
        await store.incrby("n")

        assert store._data["n"].expires_at is not None
        store._data["n"].expires_at = time.monotonic() - 1

        assert await store.get("n") is None

    @pytest.mark.asyncio
    async def test_expire_missing_key(self, store):
        assert await store.expire("nope", 10) is False

    @pytest.mark.asyncio
    async def test_wrong_type(self, store):
        """Scalar commands on a list raise like Redis WRONGTYPE."""
        await store.lpush("l", "a")

        with pytest.raises(TypeError):
            await store.get("l")


class TestInMemoryKeys:
    """Pattern matching and deletion."""

    @pytest.mark.asyncio
    async def test_keys_glob(self, store):
        await store.set("ai_cache:aaa", "1")
        await store.set("ai_cache:bbb", "2")
        await store.set("budget:daily:2026-10-17", "3")

        assert sorted(await store.keys("ai_cache:*")) == ["ai_cache:aaa", "ai_cache:bbb"]

    @pytest.mark.asyncio
    async def test_delete_counts_existing(self, store):
        await store.set("a", "1")
        await store.set("b", "2")

        assert await store.delete("a", "b", "c") == 2
        assert await store.delete() == 0


class TestInMemoryLists:
    """List commands with Redis inclusive indices."""

    @pytest.mark.asyncio
    async def test_lpush_prepends(self, store):
        await store.lpush("l", "1")
        await store.lpush("l", "2")
        length = await store.lpush("l", "3")

        assert length == 3
        assert await store.lrange("l", 0, -1) == ["3", "2", "1"]

    @pytest.mark.asyncio
    async def test_ltrim_keeps_newest(self, store):
        for i in range(10):
            await store.lpush("l", str(i))

        await store.ltrim("l", 0, 2)

        assert await store.lrange("l", 0, -1) == ["9", "8", "7"]

    @pytest.mark.asyncio
    async def test_lrange_missing_key(self, store):
        assert await store.lrange("missing", 0, -1) == []

    @pytest.mark.asyncio
    async def test_ping(self, store):
        assert await store.ping() is True


class TestGetStore:
    """Backend selection from settings."""

    def test_in_memory_without_redis_url(self):
        assert isinstance(get_store(make_settings(redis_url="")), InMemoryStore)

    def test_redis_with_url(self):
        """RedisStore is built lazily, without connecting."""
        store = get_store(make_settings(redis_url="redis://localhost:6379/0"))

        assert isinstance(store, RedisStore)
        assert store._client is None
