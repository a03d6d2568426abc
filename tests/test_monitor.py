"""
Performance Monitor Tests

Validates metric rows, rolling counters, statistics readers, the SQL sink
and report aggregation. Observability failures must never propagate.

Test Categories:
1. TestRecord - Successful requests
2. TestRecordErrors - Failed requests
3. TestStats - Provider, cache and error statistics
4. TestMonitorFailures - Store and sink outages are swallowed
5. TestSQLMetricsSink - ai_model_metrics table through aiosqlite
6. TestMetricsReporter - Report aggregation
"""

from datetime import datetime, timezone

import pytest

from ai_router.errors import BudgetExceededError
from ai_router.metrics.monitor import PerformanceMonitor
from ai_router.metrics.reporter import MetricsReporter
from ai_router.metrics.store import (
    InMemoryMetricsSink,
    MetricRecord,
    SQLMetricsSink,
    get_metrics_sink,
)
from ai_router.schemas.routing import AIResponse

from tests.fixtures import (
    MARKET_ANALYSIS,
    SENTIMENT_LOW_PRIORITY,
    FailingSink,
    FailingStore,
    make_settings,
)


@pytest.fixture
def monitor(store, sink, settings):
    return PerformanceMonitor(store, sink, settings)


def _hour() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H")


def _day() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def _response(
    provider: str = "claude",
    model: str = "claude-3-haiku",
    cost: float = 0.001,
    tokens: int = 100,
    latency: float = 200.0,
    **kwargs,
) -> AIResponse:
    return AIResponse(
        content="ok",
        model=model,
        provider=provider,
        tokens_used=tokens,
        cost=cost,
        latency_ms=latency,
        **kwargs,
    )


class TestRecord:
    """Tests for record() and record_cache_hit()."""

    @pytest.mark.asyncio
    async def test_inserts_row(self, monitor, sink):
        request = SENTIMENT_LOW_PRIORITY.model_copy(
            update={"user_id": "u-1", "session_id": "s-1"}
        )

        await monitor.record(request, _response())

        [row] = sink.get_recent()
        assert row.task_type == "sentiment_analysis"
        assert row.model == "claude-3-haiku"
        assert row.provider == "claude"
        assert row.tokens_used == 100
        assert row.success is True
        assert row.user_id == "u-1"
        assert row.session_id == "s-1"
        assert row.error_type is None

    @pytest.mark.asyncio
    async def test_anonymous_user(self, monitor, sink):
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response())

        assert sink.get_recent()[0].user_id == "anonymous"

    @pytest.mark.asyncio
    async def test_request_ids_unique(self, monitor, sink):
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response())
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response())

        ids = {r.request_id for r in sink.get_recent()}
        assert len(ids) == 2

    @pytest.mark.asyncio
    async def test_hour_and_day_counters(self, monitor, store):
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response(cost=0.5, tokens=40))

        for period in (_hour(), _day()):
            prefix = f"metrics:{period}:claude"
            assert await store.get(f"{prefix}:requests") == "1"
            assert float(await store.get(f"{prefix}:cost")) == pytest.approx(0.5)
            assert await store.get(f"{prefix}:tokens") == "40"
            assert await store.lrange(f"{prefix}:latency", 0, -1) == ["200.0"]

        assert await store.get(f"metrics:{_day()}:total:requests") == "1"
        assert await store.get(f"metrics:{_hour()}:task:sentiment_analysis:requests") == "1"
        assert await store.get(f"metrics:{_hour()}:cache:misses") == "1"
        assert await store.get(f"metrics:{_hour()}:fallback:used") is None

    @pytest.mark.asyncio
    async def test_fallback_counter(self, monitor, store):
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response(fallback_used=True))

        assert await store.get(f"metrics:{_hour()}:fallback:used") == "1"

    @pytest.mark.asyncio
    async def test_counters_expire(self, monitor, store):
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response())

        keys = await store.keys("metrics:*")
        assert keys
        for key in keys:
            assert store._data[key].expires_at is not None

    @pytest.mark.asyncio
    async def test_latency_list_bounded(self, store, sink):
        monitor = PerformanceMonitor(store, sink, make_settings(latency_sample_size=3))

        for latency in (1.0, 2.0, 3.0, 4.0, 5.0):
            await monitor.record(SENTIMENT_LOW_PRIORITY, _response(latency=latency))

        samples = await store.lrange(f"metrics:{_hour()}:claude:latency", 0, -1)
        assert samples == ["5.0", "4.0", "3.0"]

    @pytest.mark.asyncio
    async def test_cache_hit_has_no_row(self, monitor, sink, store):
        """Cache hits move counters only."""
        await monitor.record_cache_hit(SENTIMENT_LOW_PRIORITY, _response(cached=True))

        assert sink.total_inserted == 0
        assert await store.get(f"metrics:{_hour()}:cache:hits") == "1"
        assert await store.get(f"metrics:{_hour()}:task:sentiment_analysis:requests") == "1"
        assert await store.get(f"metrics:{_hour()}:claude:requests") is None

    @pytest.mark.asyncio
    async def test_disabled_monitor_records_nothing(self, store, sink):
        monitor = PerformanceMonitor(store, sink, make_settings(metrics_enabled=False))

        await monitor.record(SENTIMENT_LOW_PRIORITY, _response())
        await monitor.record_error(SENTIMENT_LOW_PRIORITY, ValueError("x"))

        assert sink.total_inserted == 0
        assert await store.keys("*") == []


class TestRecordErrors:
    """Tests for record_error()."""

    @pytest.mark.asyncio
    async def test_error_row(self, monitor, sink):
        error = BudgetExceededError(
            "Daily budget limit would be exceeded", current_spend=9.99, estimated_cost=0.02
        )

        await monitor.record_error(MARKET_ANALYSIS, error)

        [row] = sink.get_recent()
        assert row.success is False
        assert row.model == "unknown"
        assert row.provider == "unknown"
        assert row.cost == 0.0
        assert row.error_type == "BudgetExceededError"
        assert "Daily budget" in row.error_message

    @pytest.mark.asyncio
    async def test_error_counters(self, monitor, store):
        await monitor.record_error(MARKET_ANALYSIS, RuntimeError("boom"))
        await monitor.record_error(MARKET_ANALYSIS, RuntimeError("boom again"))

        hour = _hour()
        assert await store.get(f"metrics:{hour}:errors:total") == "2"
        assert await store.get(f"metrics:{hour}:errors:market_analysis") == "2"
        assert await store.get(f"metrics:{hour}:errors:type:RuntimeError") == "2"


class TestStats:
    """Tests for the statistics readers."""

    @pytest.mark.asyncio
    async def test_provider_stats(self, monitor):
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response(cost=0.2, tokens=100, latency=100.0))
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response(cost=0.4, tokens=300, latency=300.0))

        stats = await monitor.get_provider_stats("hour")

        assert set(stats) == {"openai", "claude", "gemini"}
        claude = stats["claude"]
        assert claude.requests == 2
        assert claude.cost == pytest.approx(0.6)
        assert claude.tokens == 400
        assert claude.avg_latency_ms == pytest.approx(200.0)
        assert claude.cost_per_request == pytest.approx(0.3)
        assert claude.tokens_per_request == pytest.approx(200.0)
        assert stats["openai"].requests == 0
        assert stats["openai"].cost_per_request == 0.0

    @pytest.mark.asyncio
    async def test_provider_stats_day(self, monitor):
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response(provider="gemini", model="gemini-pro"))

        stats = await monitor.get_provider_stats("day")

        assert stats["gemini"].requests == 1

    @pytest.mark.asyncio
    async def test_cache_stats(self, monitor):
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response())
        await monitor.record_cache_hit(SENTIMENT_LOW_PRIORITY, _response(cached=True))
        await monitor.record_cache_hit(SENTIMENT_LOW_PRIORITY, _response(cached=True))
        await monitor.record_cache_hit(SENTIMENT_LOW_PRIORITY, _response(cached=True))

        stats = await monitor.get_cache_stats()

        assert stats.hits == 3
        assert stats.misses == 1
        assert stats.total == 4
        assert stats.hit_rate == pytest.approx(0.75)

    @pytest.mark.asyncio
    async def test_empty_cache_stats(self, monitor):
        stats = await monitor.get_cache_stats()

        assert stats.total == 0
        assert stats.hit_rate == 0.0

    @pytest.mark.asyncio
    async def test_error_stats_only_non_zero(self, monitor):
        await monitor.record_error(MARKET_ANALYSIS, RuntimeError("boom"))

        stats = await monitor.get_error_stats()

        assert stats.total == 1
        assert stats.by_task_type == {"market_analysis": 1}

    @pytest.mark.asyncio
    async def test_error_stats_by_error_class(self, monitor):
        await monitor.record_error(MARKET_ANALYSIS, RuntimeError("boom"))
        await monitor.record_error(SENTIMENT_LOW_PRIORITY, RuntimeError("boom"))
        await monitor.record_error(MARKET_ANALYSIS, ValueError("bad"))

        stats = await monitor.get_error_stats()

        assert stats.total == 3
        assert stats.by_error_type == {"RuntimeError": 2, "ValueError": 1}


class TestMonitorFailures:
    """Store and sink outages never propagate."""

    @pytest.mark.asyncio
    async def test_failing_store(self, sink, settings):
        monitor = PerformanceMonitor(FailingStore(), sink, settings)

        await monitor.record(SENTIMENT_LOW_PRIORITY, _response())
        await monitor.record_cache_hit(SENTIMENT_LOW_PRIORITY, _response(cached=True))
        await monitor.record_error(SENTIMENT_LOW_PRIORITY, RuntimeError("x"))

        assert sink.total_inserted == 2
        assert await monitor.get_provider_stats() == {}
        assert (await monitor.get_cache_stats()).total == 0
        assert (await monitor.get_error_stats()).total == 0

    @pytest.mark.asyncio
    async def test_failing_sink(self, store, settings):
        """A sink outage still updates the counters."""
        monitor = PerformanceMonitor(store, FailingSink(), settings)

        await monitor.record(SENTIMENT_LOW_PRIORITY, _response())
        await monitor.record_error(SENTIMENT_LOW_PRIORITY, RuntimeError("x"))

        assert await store.get(f"metrics:{_hour()}:claude:requests") == "1"
        assert await store.get(f"metrics:{_hour()}:errors:total") == "1"


class TestSQLMetricsSink:
    """The SQLAlchemy sink against a file-backed SQLite database."""

    @pytest.mark.asyncio
    async def test_insert_and_fetch(self, tmp_path):
        sink = SQLMetricsSink.from_url(f"sqlite+aiosqlite:///{tmp_path}/metrics.db")
        try:
            await sink.create_schema()
            await sink.insert(
                MetricRecord(
                    request_id="req-1",
                    task_type="general",
                    model="claude-3-sonnet",
                    provider="claude",
                    tokens_used=12,
                    cost=0.00018,
                    latency=42.0,
                )
            )
            await sink.insert(
                MetricRecord(
                    request_id="req-2",
                    task_type="general",
                    model="unknown",
                    provider="unknown",
                    success=False,
                    error_message="All models failed",
                    error_type="AllModelsFailedError",
                )
            )

            rows = await sink.fetch_recent(10)
        finally:
            await sink.close()

        assert [r["request_id"] for r in rows] == ["req-2", "req-1"]
        assert rows[0]["success"] is False
        assert rows[0]["error_type"] == "AllModelsFailedError"
        assert rows[1]["tokens_used"] == 12
        assert rows[1]["user_id"] == "anonymous"

    @pytest.mark.asyncio
    async def test_monitor_writes_to_sql(self, tmp_path, store, settings):
        sink = SQLMetricsSink.from_url(f"sqlite+aiosqlite:///{tmp_path}/metrics.db")
        monitor = PerformanceMonitor(store, sink, settings)
        try:
            await sink.create_schema()
            await monitor.record(SENTIMENT_LOW_PRIORITY, _response())
            rows = await sink.fetch_recent()
        finally:
            await monitor.close()

        assert len(rows) == 1
        assert rows[0]["task_type"] == "sentiment_analysis"

    def test_sink_selection(self, tmp_path):
        assert isinstance(get_metrics_sink(make_settings(database_url="")), InMemoryMetricsSink)

        sink = get_metrics_sink(
            make_settings(database_url=f"sqlite+aiosqlite:///{tmp_path}/metrics.db")
        )
        assert isinstance(sink, SQLMetricsSink)


class TestInMemoryMetricsSink:
    """Bounded in-process history."""

    @pytest.mark.asyncio
    async def test_history_bounded(self):
        sink = InMemoryMetricsSink(max_history=2)

        for i in range(3):
            await sink.insert(
                MetricRecord(request_id=str(i), task_type="general", model="m", provider="p")
            )

        assert [r.request_id for r in sink.get_recent()] == ["1", "2"]
        assert sink.total_inserted == 3

        sink.reset()
        assert sink.get_recent() == []


class TestMetricsReporter:
    """Tests for MetricsReporter.generate_report()."""

    @pytest.mark.asyncio
    async def test_report(self, monitor):
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response(cost=0.1, tokens=10, latency=100.0))
        await monitor.record(SENTIMENT_LOW_PRIORITY, _response(cost=0.1, tokens=10, latency=100.0))
        await monitor.record(
            SENTIMENT_LOW_PRIORITY,
            _response(provider="openai", model="gpt-3.5-turbo", cost=0.2, tokens=30, latency=400.0),
        )
        await monitor.record_error(MARKET_ANALYSIS, RuntimeError("boom"))

        report = await MetricsReporter(monitor).generate_report("hour")

        assert report.timeframe == "hour"
        assert report.summary.total_requests == 3
        assert report.summary.total_cost == pytest.approx(0.4)
        assert report.summary.total_tokens == 50
        # (100 * 2 + 400 * 1) / 3, idle gemini excluded
        assert report.summary.avg_latency_ms == pytest.approx(200.0)
        assert report.caching.misses == 3
        assert report.errors.total == 1

    @pytest.mark.asyncio
    async def test_empty_report(self, monitor):
        report = await MetricsReporter(monitor).generate_report("day")

        assert report.summary.total_requests == 0
        assert report.summary.avg_latency_ms == 0.0
        assert set(report.providers) == {"openai", "claude", "gemini"}
