"""
Response Cache - content-addressed caching of AI responses.

Identical requests (same task type, prompt, context, max tokens and
temperature) map to the same key, so the second one never reaches a
provider. Caller identity (user_id, session_id) is deliberately left out of
the key: responses are shared across users.

TTL design:
- business_plan: 24h, plans are stable
- market_analysis: 1h, market data moves
- sentiment_analysis: 30min, sentiment is time-sensitive
- general / anything else: cache_default_ttl (1h)
All TTLs are multiplied by cache_ttl_multiplier for the environment.

The cache is an optimization only. Storage failures are logged and read as
misses; they never fail a request.
"""

import hashlib
import json
import logging

from pydantic import ValidationError

from ai_router.cache.store import KeyValueStore
from ai_router.errors import SUBSYSTEM_POLICIES, Subsystem
from ai_router.schemas.routing import AIRequest, AIResponse, TaskType

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "ai_cache"

TASK_TTL_SECONDS: dict[TaskType, int] = {
    TaskType.BUSINESS_PLAN: 24 * 3600,
    TaskType.MARKET_ANALYSIS: 3600,
    TaskType.SENTIMENT_ANALYSIS: 30 * 60,
}


class ResponseCache:
    """
    Cache of AIResponse objects keyed by request content.

    All public methods are async because the underlying store is I/O-bound.

    Example:
        cache = ResponseCache(store, settings)
        key = cache.generate_cache_key(request)
        if (hit := await cache.get(key)) is not None:
            return hit
    """

    failure_policy = SUBSYSTEM_POLICIES[Subsystem.CACHE]

    def __init__(self, store: KeyValueStore, settings) -> None:
        self._store = store
        self._enabled = settings.cache_enabled
        self._default_ttl = settings.cache_default_ttl
        self._ttl_multiplier = settings.cache_ttl_multiplier
        self._key_length = settings.cache_key_length

    @property
    def enabled(self) -> bool:
        return self._enabled

    def generate_cache_key(self, request: AIRequest) -> str:
        """
        Build a deterministic key from the request content.

        Defaults are applied before hashing so that an omitted max_tokens
        and an explicit 4000 share an entry.

        Returns:
            String of the form "ai_cache:<hex prefix>"
        """
        content = json.dumps(
            {
                "taskType": request.task_type.value,
                "prompt": request.prompt,
                "context": request.context or "",
                "maxTokens": request.effective_max_tokens,
                "temperature": request.effective_temperature,
            }
        )
        digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
        return f"{CACHE_NAMESPACE}:{digest[: self._key_length]}"

    def calculate_ttl(self, request: AIRequest) -> int:
        """TTL in seconds for a request's task type, scaled for the environment."""
        base_ttl = TASK_TTL_SECONDS.get(request.task_type, self._default_ttl)
        return max(1, int(base_ttl * self._ttl_multiplier))

    async def get(self, key: str) -> AIResponse | None:
        """
        Return the cached response with cached=True, or None.

        Misses, expired entries, unreadable payloads and storage errors all
        return None.
        """
        if not self._enabled:
            return None

        try:
            raw = await self._store.get(key)
        except Exception as e:
            logger.warning(f"Cache get failed ({self.failure_policy.value}): {e}")
            return None

        if raw is None:
            return None

        try:
            response = AIResponse.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

        return response.model_copy(update={"cached": True})

    async def set(self, key: str, response: AIResponse, ttl: int | None = None) -> None:
        """
        Store a response under key.

        Args:
            key: Key from generate_cache_key()
            response: Response to store (stored with cached=False)
            ttl: Seconds until expiry (default: cache_default_ttl scaled)
        """
        if not self._enabled:
            return

        ttl = max(1, ttl or int(self._default_ttl * self._ttl_multiplier))
        payload = response.model_copy(update={"cached": False}).model_dump_json()

        try:
            await self._store.setex(key, ttl, payload)
        except Exception as e:
            logger.warning(f"Cache set failed ({self.failure_policy.value}): {e}")

    async def invalidate(self, pattern: str = f"{CACHE_NAMESPACE}:*") -> int:
        """
        Delete every key matching a glob pattern.

        Administrative cache-busting, not part of the request path.

        Returns:
            Number of keys deleted (0 on storage error)
        """
        if not self._enabled:
            return 0

        try:
            keys = await self._store.keys(pattern)
            deleted = await self._store.delete(*keys) if keys else 0
        except Exception as e:
            logger.warning(f"Cache invalidation failed for {pattern!r}: {e}")
            return 0

        logger.info(f"Invalidated {deleted} cache entries matching {pattern!r}")
        return deleted

    async def warmup(self, requests: list[AIRequest]) -> list[str]:
        """
        Check which common requests are not cached yet.

        Returns:
            Keys of the requests that are currently cache misses
        """
        cold: list[str] = []
        for request in requests:
            key = self.generate_cache_key(request)
            if await self.get(key) is None:
                logger.info(f"Cache miss for warmup request: {request.task_type.value}")
                cold.append(key)
        return cold

    async def get_stats(self) -> dict:
        """Summary of the cache namespace for diagnostics."""
        stats = {
            "enabled": self._enabled,
            "backend": type(self._store).__name__,
            "available": True,
            "entries": 0,
        }
        try:
            stats["entries"] = len(await self._store.keys(f"{CACHE_NAMESPACE}:*"))
        except Exception as e:
            logger.warning(f"Failed to get cache stats: {e}")
            stats["available"] = False

        return stats
