"""
Cache module: key-value store backends and the response cache.

This module contains:
- store.py: KeyValueStore interface, RedisStore, InMemoryStore, get_store()
- response_cache.py: content-addressed AIResponse cache with per-task TTLs
"""

from ai_router.cache.store import (
    InMemoryStore,
    KeyValueStore,
    RedisStore,
    get_store,
)

from ai_router.cache.response_cache import (
    CACHE_NAMESPACE,
    TASK_TTL_SECONDS,
    ResponseCache,
)

__all__ = [
    "KeyValueStore",
    "RedisStore",
    "InMemoryStore",
    "get_store",
    "ResponseCache",
    "CACHE_NAMESPACE",
    "TASK_TTL_SECONDS",
]
