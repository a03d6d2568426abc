"""
Performance Monitor

Records every routed request twice:
1. One MetricRecord row in the metrics sink (long-term analysis)
2. Rolling counters in the key-value store (dashboards), all expiring after
   metrics_retention_seconds (7 days):

    metrics:<hour>:<provider>:requests|cost|tokens
    metrics:<day>:<provider>:requests|cost|tokens
    metrics:<day>:total:requests|cost
    metrics:<hour>:<provider>:latency      (newest 1000 samples)
    metrics:<day>:<provider>:latency       (newest 1000 samples)
    metrics:<hour>:task:<task>:requests
    metrics:<hour>:cache:hits|misses
    metrics:<hour>:fallback:used
    metrics:<hour>:errors:total|<task>|type:<ErrorClass>

<hour> is YYYY-MM-DDTHH and <day> is YYYY-MM-DD, both UTC.

Observability must never fail a request: every method logs and swallows
its own errors.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Literal

from ai_router.cache.store import KeyValueStore
from ai_router.errors import SUBSYSTEM_POLICIES, Subsystem
from ai_router.metrics.store import MetricRecord, MetricsSink
from ai_router.registry.models import ModelProvider
from ai_router.schemas.reports import CacheStats, ErrorStats, ProviderStats
from ai_router.schemas.routing import AIRequest, AIResponse, TaskType

logger = logging.getLogger(__name__)

Timeframe = Literal["hour", "day"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _time_keys(now: datetime) -> tuple[str, str]:
    """(hour key, day key) for a UTC timestamp."""
    return now.strftime("%Y-%m-%dT%H"), now.strftime("%Y-%m-%d")


class PerformanceMonitor:
    """
    Request metrics recorder and rolling-counter reader.

    Example:
        monitor = PerformanceMonitor(store, sink, settings)
        await monitor.record(request, response)
        stats = await monitor.get_provider_stats("day")
    """

    failure_policy = SUBSYSTEM_POLICIES[Subsystem.METRICS]

    def __init__(self, store: KeyValueStore, sink: MetricsSink, settings) -> None:
        self._store = store
        self._sink = sink
        self._enabled = settings.metrics_enabled
        self._retention = settings.metrics_retention_seconds
        self._latency_samples = settings.latency_sample_size

    @property
    def sink(self) -> MetricsSink:
        return self._sink

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def record(self, request: AIRequest, response: AIResponse) -> None:
        """Persist a successful response and update the rolling counters."""
        if not self._enabled:
            return

        record = MetricRecord(
            request_id=str(uuid.uuid4()),
            task_type=request.task_type.value,
            model=response.model,
            provider=response.provider,
            tokens_used=response.tokens_used,
            cost=response.cost,
            latency=response.latency_ms,
            success=True,
            fallback_used=response.fallback_used,
            cached=response.cached,
            user_id=request.user_id or "anonymous",
            session_id=request.session_id,
        )

        await self._insert(record)
        await self._update_request_counters(record)

        logger.info(
            f"AI request: {record.task_type} | {record.provider}:{record.model} | "
            f"{record.latency:.0f}ms | ${record.cost:.6f} | cached={record.cached}"
        )

    async def record_cache_hit(self, request: AIRequest, response: AIResponse) -> None:
        """
        Count a cache hit.

        Cache hits do not write a metrics row; only the hit and task
        counters move.
        """
        if not self._enabled:
            return

        hour, _ = _time_keys(_utcnow())
        try:
            await self._incr(f"metrics:{hour}:cache:hits")
            await self._incr(f"metrics:{hour}:task:{request.task_type.value}:requests")
        except Exception as e:
            logger.warning(f"Failed to record cache hit ({self.failure_policy.value}): {e}")

    async def record_error(self, request: AIRequest, error: Exception) -> None:
        """Persist a failed request and update the hourly error counters."""
        if not self._enabled:
            return

        record = MetricRecord(
            request_id=str(uuid.uuid4()),
            task_type=request.task_type.value,
            model="unknown",
            provider="unknown",
            success=False,
            user_id=request.user_id or "anonymous",
            session_id=request.session_id,
            error_message=str(error),
            error_type=type(error).__name__,
        )

        await self._insert(record)

        hour, _ = _time_keys(record.timestamp)
        try:
            await self._incr(f"metrics:{hour}:errors:total")
            await self._incr(f"metrics:{hour}:errors:{record.task_type}")
            await self._incr(f"metrics:{hour}:errors:type:{record.error_type}")
        except Exception as e:
            logger.warning(f"Failed to update error metrics ({self.failure_policy.value}): {e}")

        logger.error(f"AI error: {record.task_type} | {record.error_type}: {error}")

    async def _insert(self, record: MetricRecord) -> None:
        try:
            await self._sink.insert(record)
        except Exception as e:
            logger.warning(f"Failed to store metrics row ({self.failure_policy.value}): {e}")

    async def _incr(self, key: str, amount: int = 1) -> None:
        await self._store.incrby(key, amount)
        await self._store.expire(key, self._retention)

    async def _incr_float(self, key: str, amount: float) -> None:
        await self._store.incrbyfloat(key, amount)
        await self._store.expire(key, self._retention)

    async def _push_latency(self, key: str, latency: float) -> None:
        await self._store.lpush(key, repr(float(latency)))
        await self._store.ltrim(key, 0, self._latency_samples - 1)
        await self._store.expire(key, self._retention)

    async def _update_request_counters(self, record: MetricRecord) -> None:
        hour, day = _time_keys(record.timestamp)

        try:
            for period in (hour, day):
                prefix = f"metrics:{period}:{record.provider}"
                await self._incr(f"{prefix}:requests")
                await self._incr_float(f"{prefix}:cost", record.cost)
                await self._incr(f"{prefix}:tokens", record.tokens_used)
                await self._push_latency(f"{prefix}:latency", record.latency)

            await self._incr(f"metrics:{day}:total:requests")
            await self._incr_float(f"metrics:{day}:total:cost", record.cost)

            await self._incr(f"metrics:{hour}:task:{record.task_type}:requests")

            cache_counter = "hits" if record.cached else "misses"
            await self._incr(f"metrics:{hour}:cache:{cache_counter}")

            if record.fallback_used:
                await self._incr(f"metrics:{hour}:fallback:used")
        except Exception as e:
            logger.warning(f"Failed to update real-time metrics ({self.failure_policy.value}): {e}")

    async def _get_int(self, key: str) -> int:
        value = await self._store.get(key)
        return int(float(value)) if value else 0

    async def _get_float(self, key: str) -> float:
        value = await self._store.get(key)
        return float(value) if value else 0.0

    async def get_provider_stats(self, timeframe: Timeframe = "hour") -> dict[str, ProviderStats]:
        """
        Per-provider counters for the current hour or day.

        Returns:
            Mapping of every known provider to its stats (zeros when idle),
            or an empty mapping when the store is unreachable
        """
        hour, day = _time_keys(_utcnow())
        period = day if timeframe == "day" else hour

        stats: dict[str, ProviderStats] = {}
        try:
            for provider in ModelProvider:
                prefix = f"metrics:{period}:{provider.value}"
                requests = await self._get_int(f"{prefix}:requests")
                cost = await self._get_float(f"{prefix}:cost")
                tokens = await self._get_int(f"{prefix}:tokens")
                latencies = [
                    float(v) for v in await self._store.lrange(f"{prefix}:latency", 0, -1)
                ]

                stats[provider.value] = ProviderStats(
                    requests=requests,
                    cost=cost,
                    tokens=tokens,
                    avg_latency_ms=round(sum(latencies) / len(latencies), 2) if latencies else 0.0,
                    cost_per_request=cost / requests if requests else 0.0,
                    tokens_per_request=tokens / requests if requests else 0.0,
                )
        except Exception as e:
            logger.warning(f"Failed to get provider stats: {e}")
            return {}

        return stats

    async def get_cache_stats(self) -> CacheStats:
        """Cache hits and misses for the current hour."""
        hour, _ = _time_keys(_utcnow())
        try:
            hits = await self._get_int(f"metrics:{hour}:cache:hits")
            misses = await self._get_int(f"metrics:{hour}:cache:misses")
        except Exception as e:
            logger.warning(f"Failed to get cache stats: {e}")
            return CacheStats()

        total = hits + misses
        return CacheStats(
            hits=hits,
            misses=misses,
            total=total,
            hit_rate=hits / total if total else 0.0,
        )

    async def get_error_stats(self) -> ErrorStats:
        """Error counts for the current hour, overall, per task type and per error class."""
        hour, _ = _time_keys(_utcnow())
        try:
            total = await self._get_int(f"metrics:{hour}:errors:total")
            by_task_type = {}
            for task_type in TaskType:
                count = await self._get_int(f"metrics:{hour}:errors:{task_type.value}")
                if count:
                    by_task_type[task_type.value] = count
            type_prefix = f"metrics:{hour}:errors:type:"
            by_error_type = {}
            for key in await self._store.keys(f"{type_prefix}*"):
                by_error_type[key[len(type_prefix):]] = await self._get_int(key)
        except Exception as e:
            logger.warning(f"Failed to get error stats: {e}")
            return ErrorStats()

        return ErrorStats(total=total, by_task_type=by_task_type, by_error_type=by_error_type)

    async def close(self) -> None:
        await self._sink.close()
