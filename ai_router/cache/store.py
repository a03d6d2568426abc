"""
Key-value store backends.

The router keeps three kinds of state in a Redis-shaped store: cached
responses, budget counters and rolling metric counters. This module defines
the KeyValueStore interface and two implementations:
- RedisStore: production backend using redis.asyncio
- InMemoryStore: dict-based backend with TTL, for development and tests

Backends raise on failure. Each caller applies its own failure policy
(budget fails open, cache and metrics fail silent), so errors must reach it.
"""

import fnmatch
import logging
import time
from abc import ABC, abstractmethod

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Async subset of the Redis command set used by the router."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the string value for key, or None if missing/expired."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store value under key without expiry."""

    @abstractmethod
    async def setex(self, key: str, ttl: int, value: str) -> None:
        """Store value under key, expiring after ttl seconds."""

    @abstractmethod
    async def incrby(self, key: str, amount: int = 1) -> int:
        """Atomically add an integer to key (missing counts as 0)."""

    @abstractmethod
    async def incrbyfloat(self, key: str, amount: float) -> float:
        """Atomically add a float to key (missing counts as 0)."""

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> bool:
        """Set a TTL on an existing key. Returns False if key is missing."""

    @abstractmethod
    async def keys(self, pattern: str = "*") -> list[str]:
        """Return keys matching a glob pattern."""

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys, returning how many existed."""

    @abstractmethod
    async def lpush(self, key: str, *values: str) -> int:
        """Prepend values to a list, returning the new length."""

    @abstractmethod
    async def ltrim(self, key: str, start: int, end: int) -> None:
        """Keep only list elements in [start, end] (inclusive, Redis indices)."""

    @abstractmethod
    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        """Return list elements in [start, end] (inclusive, Redis indices)."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the backend is reachable."""

    async def close(self) -> None:
        """Release connections. No-op by default."""


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisStore(KeyValueStore):
    """
    Production store backed by Redis.

    The client is created lazily on first use so importing and constructing
    the store never blocks on the network. Responses are decoded to str.
    """

    def __init__(self, redis_url: str) -> None:
        self._redis_url = redis_url
        self._client: aioredis.Redis | None = None

    @property
    def client(self) -> aioredis.Redis:
        """Get Redis client (lazy initialization)."""
        if self._client is None:
            self._client = aioredis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
            )
            logger.debug(f"Initialized Redis client for {self._redis_url}")
        return self._client

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str) -> None:
        await self.client.set(key, value)

    async def setex(self, key: str, ttl: int, value: str) -> None:
        await self.client.setex(key, ttl, value)

    async def incrby(self, key: str, amount: int = 1) -> int:
        return int(await self.client.incrby(key, amount))

    async def incrbyfloat(self, key: str, amount: float) -> float:
        return float(await self.client.incrbyfloat(key, amount))

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self.client.expire(key, seconds))

    async def keys(self, pattern: str = "*") -> list[str]:
        # SCAN instead of KEYS so large keyspaces do not block the server
        return [key async for key in self.client.scan_iter(match=pattern, count=100)]

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self.client.delete(*keys))

    async def lpush(self, key: str, *values: str) -> int:
        return int(await self.client.lpush(key, *values))

    async def ltrim(self, key: str, start: int, end: int) -> None:
        await self.client.ltrim(key, start, end)

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        return list(await self.client.lrange(key, start, end))

    async def ping(self) -> bool:
        return bool(await self.client.ping())

    async def close(self) -> None:
        """Close the Redis connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# ---------------------------------------------------------------------------
# In-memory backend (development / tests)
# ---------------------------------------------------------------------------


class _Entry:
    """Single value stored by InMemoryStore."""

    __slots__ = ("value", "expires_at")

    def __init__(self, value: str | list[str], expires_at: float | None = None) -> None:
        self.value = value
        self.expires_at = expires_at

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at


def _redis_slice(items: list[str], start: int, end: int) -> list[str]:
    """Apply Redis inclusive [start, end] indexing to a list."""
    length = len(items)
    if start < 0:
        start = max(length + start, 0)
    if end < 0:
        end = length + end
    if start > end or start >= length:
        return []
    return items[start : end + 1]


class InMemoryStore(KeyValueStore):
    """
    Dict-backed store with Redis-like TTL and list semantics.

    No operation awaits internally, so each call is atomic with respect to
    other coroutines on the same event loop. Does NOT persist across process
    restarts or share state between processes.
    """

    def __init__(self) -> None:
        self._data: dict[str, _Entry] = {}

    def _live(self, key: str) -> _Entry | None:
        entry = self._data.get(key)
        if entry is not None and entry.is_expired:
            del self._data[key]
            return None
        return entry

    def _scalar(self, key: str) -> str | None:
        entry = self._live(key)
        if entry is None:
            return None
        if isinstance(entry.value, list):
            raise TypeError(f"WRONGTYPE key {key} holds a list")
        return entry.value

    def _list(self, key: str) -> list[str]:
        entry = self._live(key)
        if entry is None:
            return []
        if not isinstance(entry.value, list):
            raise TypeError(f"WRONGTYPE key {key} does not hold a list")
        return entry.value

    async def get(self, key: str) -> str | None:
        return self._scalar(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = _Entry(str(value))

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self._data[key] = _Entry(str(value), time.monotonic() + ttl)

    async def incrby(self, key: str, amount: int = 1) -> int:
        current = self._scalar(key)
        new_value = int(current or 0) + amount
        entry = self._data.get(key)
        expires_at = entry.expires_at if entry is not None else None
        self._data[key] = _Entry(str(new_value), expires_at)
        return new_value

    async def incrbyfloat(self, key: str, amount: float) -> float:
        current = self._scalar(key)
        new_value = float(current or 0) + amount
        entry = self._data.get(key)
        expires_at = entry.expires_at if entry is not None else None
        self._data[key] = _Entry(repr(new_value), expires_at)
        return new_value

    async def expire(self, key: str, seconds: int) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        entry.expires_at = time.monotonic() + seconds
        return True

    async def keys(self, pattern: str = "*") -> list[str]:
        return [
            key
            for key in list(self._data)
            if self._live(key) is not None and fnmatch.fnmatchcase(key, pattern)
        ]

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                deleted += 1
        return deleted

    async def lpush(self, key: str, *values: str) -> int:
        items = self._list(key)
        entry = self._data.get(key)
        expires_at = entry.expires_at if entry is not None else None
        new_items = [str(v) for v in reversed(values)] + items
        self._data[key] = _Entry(new_items, expires_at)
        return len(new_items)

    async def ltrim(self, key: str, start: int, end: int) -> None:
        items = self._list(key)
        if key in self._data:
            self._data[key].value = _redis_slice(items, start, end)

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        return list(_redis_slice(self._list(key), start, end))

    async def ping(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def get_store(settings) -> KeyValueStore:
    """
    Return the store for the given settings.

    Uses Redis when redis_url is configured; otherwise an in-process store,
    which is only suitable for a single worker.

    Args:
        settings: Application Settings instance.
    """
    if settings.redis_url:
        logger.info("Using Redis store")
        return RedisStore(settings.redis_url)

    logger.info("REDIS_URL not set, using in-memory store")
    return InMemoryStore()
