"""
Metrics Sink for Request Tracking

Every routed request (and every failure) produces one MetricRecord which is
appended to an insert-only sink:
- SQLMetricsSink: the ai_model_metrics table via SQLAlchemy async engine
  (Postgres with asyncpg in production, SQLite with aiosqlite in tests)
- InMemoryMetricsSink: bounded in-process history for development

Rolling counters for dashboards live in the key-value store and are handled
by the PerformanceMonitor; this module only persists raw rows.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    select,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)


@dataclass
class MetricRecord:
    """
    One row of the metrics table.

    Attributes:
        request_id: Unique ID generated per routed request
        task_type: Task type of the request
        model: Model that answered ("unknown" for failures)
        provider: Provider that served it ("unknown" for failures)
        tokens_used: Total tokens consumed
        cost: Cost in USD (0 for failures)
        latency: End-to-end latency in milliseconds
        success: False for budget denials and exhausted fallback chains
        fallback_used: A later candidate answered
        cached: Served from the response cache
        timestamp: UTC time the record was created
        user_id: Caller ID ("anonymous" when not given)
        session_id: Caller session, if any
        error_message: str(exception) for failures
        error_type: Exception class name for failures
    """

    request_id: str
    task_type: str
    model: str
    provider: str
    tokens_used: int = 0
    cost: float = 0.0
    latency: float = 0.0
    success: bool = True
    fallback_used: bool = False
    cached: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str = "anonymous"
    session_id: str | None = None
    error_message: str | None = None
    error_type: str | None = None


class MetricsSink(ABC):
    """Insert-only destination for MetricRecords."""

    @abstractmethod
    async def insert(self, record: MetricRecord) -> None:
        """Persist one record. Raises on failure; the monitor swallows it."""

    async def close(self) -> None:
        """Release resources. No-op by default."""


# ---------------------------------------------------------------------------
# SQL sink
# ---------------------------------------------------------------------------

metadata = MetaData()

ai_model_metrics = Table(
    "ai_model_metrics",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("request_id", String(64), nullable=False, index=True),
    Column("task_type", String(50), nullable=False),
    Column("model", String(100), nullable=False),
    Column("provider", String(50), nullable=False),
    Column("tokens_used", Integer, nullable=False, default=0),
    Column("cost", Float, nullable=False, default=0.0),
    Column("latency", Float, nullable=False, default=0.0),
    Column("success", Boolean, nullable=False),
    Column("fallback_used", Boolean, nullable=False, default=False),
    Column("cached", Boolean, nullable=False, default=False),
    Column("timestamp", DateTime(timezone=True), nullable=False, index=True),
    Column("user_id", String(128), nullable=False, default="anonymous"),
    Column("session_id", String(128)),
    Column("error_message", Text),
    Column("error_type", String(100)),
)


class SQLMetricsSink(MetricsSink):
    """
    Metrics sink writing to the ai_model_metrics table.

    One parameterised INSERT per record, each in its own transaction.

    Example:
        sink = SQLMetricsSink.from_url("postgresql+asyncpg://...")
        await sink.create_schema()
        await sink.insert(record)
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "SQLMetricsSink":
        """Build a sink with its own engine."""
        kwargs = {}
        if not database_url.startswith("sqlite"):
            kwargs = {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}
        engine = create_async_engine(database_url, **kwargs)
        return cls(engine)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def create_schema(self) -> None:
        """Create the metrics table if it does not exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("Metrics schema ready")

    async def insert(self, record: MetricRecord) -> None:
        async with self._engine.begin() as conn:
            await conn.execute(ai_model_metrics.insert().values(**asdict(record)))

    async def fetch_recent(self, count: int = 100) -> list[dict]:
        """Most recent rows, newest first."""
        query = (
            select(ai_model_metrics)
            .order_by(ai_model_metrics.c.id.desc())
            .limit(count)
        )
        async with self._engine.connect() as conn:
            result = await conn.execute(query)
            return [dict(row) for row in result.mappings()]

    async def close(self) -> None:
        await self._engine.dispose()


# ---------------------------------------------------------------------------
# In-memory sink (development / tests)
# ---------------------------------------------------------------------------


class InMemoryMetricsSink(MetricsSink):
    """
    Thread-safe in-memory metrics sink.

    Keeps at most max_history records; older ones are discarded. Designed
    for single-process deployment.

    Example:
        sink = InMemoryMetricsSink()
        await sink.insert(record)
        print(sink.get_recent(10))
    """

    def __init__(self, max_history: int = 10000):
        """
        Initialize the sink.

        Args:
            max_history: Maximum records to retain.
        """
        self._lock = threading.Lock()
        self._records: list[MetricRecord] = []
        self._max_history = max_history
        self._total_inserted = 0

    async def insert(self, record: MetricRecord) -> None:
        with self._lock:
            self._records.append(record)
            self._total_inserted += 1
            if len(self._records) > self._max_history:
                self._records = self._records[-self._max_history :]

    @property
    def total_inserted(self) -> int:
        """Records inserted since creation or the last reset."""
        return self._total_inserted

    def get_recent(self, count: int = 100) -> list[MetricRecord]:
        """
        Get most recent records, oldest first.

        Args:
            count: Number of recent records to return
        """
        with self._lock:
            return list(self._records[-count:])

    def reset(self) -> None:
        """Clear all records. Primarily used for testing."""
        with self._lock:
            self._records.clear()
            self._total_inserted = 0


def get_metrics_sink(settings) -> MetricsSink:
    """
    Return the sink for the given settings.

    Uses the SQL table when database_url is configured, otherwise an
    in-process history.
    """
    if settings.database_url:
        logger.info("Using SQL metrics sink")
        return SQLMetricsSink.from_url(settings.database_url)

    logger.info("DATABASE_URL not set, using in-memory metrics sink")
    return InMemoryMetricsSink()
