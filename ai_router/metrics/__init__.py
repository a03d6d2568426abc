"""
Metrics Module: Budgets, Request Metrics and Reporting

Components:
    CostOptimizer: Pre-routing cost estimate and daily/monthly budget guard
    BudgetCheck / BudgetStatus: Budget check outcome and current spend
    MetricRecord: One row of the ai_model_metrics table
    SQLMetricsSink / InMemoryMetricsSink: Insert-only metric destinations
    PerformanceMonitor: Metric rows plus rolling counters in the KV store
    MetricsReporter: PerformanceReport for the /metrics endpoint

Usage:
    from ai_router.metrics import CostOptimizer, PerformanceMonitor

    optimizer = CostOptimizer(store, settings)
    check = await optimizer.check_budget(request)

    monitor = PerformanceMonitor(store, get_metrics_sink(settings), settings)
    await monitor.record(request, response)

    report = await MetricsReporter(monitor).generate_report("hour")
"""

# Budgets
from ai_router.metrics.cost import (
    BudgetCheck,
    BudgetStatus,
    CostOptimizer,
)

# Storage
from ai_router.metrics.store import (
    InMemoryMetricsSink,
    MetricRecord,
    MetricsSink,
    SQLMetricsSink,
    get_metrics_sink,
)

# Recording and reporting
from ai_router.metrics.monitor import PerformanceMonitor
from ai_router.metrics.reporter import MetricsReporter


__all__ = [
    # Budgets
    "CostOptimizer",
    "BudgetCheck",
    "BudgetStatus",
    # Storage
    "MetricRecord",
    "MetricsSink",
    "SQLMetricsSink",
    "InMemoryMetricsSink",
    "get_metrics_sink",
    # Recording and reporting
    "PerformanceMonitor",
    "MetricsReporter",
]
