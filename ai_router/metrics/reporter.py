"""
Metrics Reporter for API Responses

Combines the monitor's rolling counters into a single PerformanceReport
with computed totals, the shape served by GET /metrics.
"""

import logging
from datetime import datetime, timezone

from ai_router.metrics.monitor import PerformanceMonitor, Timeframe
from ai_router.schemas.reports import PerformanceReport, ReportSummary

logger = logging.getLogger(__name__)


class MetricsReporter:
    """
    Generate performance reports from the rolling counters.

    Example:
        reporter = MetricsReporter(monitor)
        report = await reporter.generate_report("day")
        return report  # Ready for JSON serialization
    """

    def __init__(self, monitor: PerformanceMonitor):
        self._monitor = monitor

    async def generate_report(self, timeframe: Timeframe = "hour") -> PerformanceReport:
        """
        Build a report for the current hour or day.

        Cache and error statistics always cover the current hour. The
        summary latency is weighted by request count so idle providers do
        not drag the average down.
        """
        providers = await self._monitor.get_provider_stats(timeframe)
        caching = await self._monitor.get_cache_stats()
        errors = await self._monitor.get_error_stats()

        total_requests = sum(p.requests for p in providers.values())
        weighted_latency = sum(p.avg_latency_ms * p.requests for p in providers.values())

        summary = ReportSummary(
            total_requests=total_requests,
            total_cost=round(sum(p.cost for p in providers.values()), 6),
            total_tokens=sum(p.tokens for p in providers.values()),
            avg_latency_ms=(
                round(weighted_latency / total_requests, 2) if total_requests else 0.0
            ),
        )

        return PerformanceReport(
            timeframe=timeframe,
            timestamp=datetime.now(timezone.utc),
            providers=providers,
            caching=caching,
            errors=errors,
            summary=summary,
        )
