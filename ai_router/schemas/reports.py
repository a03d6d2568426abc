"""
Pydantic Schemas for Reporting, Errors and Health

Response models for the read-only side of the API:
- Provider, cache and error statistics from the rolling counters
- The aggregated performance report
- Budget status
- Error envelope and health check
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# METRICS MODELS
# =============================================================================


class ProviderStats(BaseModel):
    """
    Rolling counters for one provider over a timeframe.

    Derived fields are zero when the provider served no requests.
    """

    requests: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0.0)
    tokens: int = Field(default=0, ge=0)
    avg_latency_ms: float = Field(default=0.0, ge=0.0)
    cost_per_request: float = Field(default=0.0, ge=0.0)
    tokens_per_request: float = Field(default=0.0, ge=0.0)


class CacheStats(BaseModel):
    """Cache hit/miss counters for the current hour."""

    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    hit_rate: float = Field(default=0.0, ge=0.0, le=1.0)


class ErrorStats(BaseModel):
    """Error counters for the current hour."""

    total: int = Field(default=0, ge=0)
    by_task_type: dict[str, int] = Field(default_factory=dict)
    by_error_type: dict[str, int] = Field(default_factory=dict)


class ReportSummary(BaseModel):
    """Totals across all providers."""

    total_requests: int = Field(default=0, ge=0)
    total_cost: float = Field(default=0.0, ge=0.0)
    total_tokens: int = Field(default=0, ge=0)
    avg_latency_ms: float = Field(
        default=0.0,
        ge=0.0,
        description="Request-weighted average provider latency",
    )


class PerformanceReport(BaseModel):
    """
    Response from the /metrics endpoint.

    Example:
        {
            "timeframe": "hour",
            "timestamp": "2026-10-17T18:00:00Z",
            "providers": {"claude": {"requests": 12, "cost": 0.04, ...}},
            "caching": {"hits": 5, "misses": 12, "total": 17, "hit_rate": 0.29},
            "errors": {"total": 1, "by_task_type": {"general": 1}},
            "summary": {"total_requests": 12, "total_cost": 0.04, ...}
        }
    """

    timeframe: Literal["hour", "day"]
    timestamp: datetime
    providers: dict[str, ProviderStats] = Field(default_factory=dict)
    caching: CacheStats = Field(default_factory=CacheStats)
    errors: ErrorStats = Field(default_factory=ErrorStats)
    summary: ReportSummary = Field(default_factory=ReportSummary)


class BudgetStatusResponse(BaseModel):
    """Response from the /budget endpoint."""

    daily_spend: float = Field(default=0.0, ge=0.0)
    daily_limit: float = Field(..., gt=0.0)
    daily_utilization: float = Field(default=0.0, ge=0.0)
    monthly_spend: float = Field(default=0.0, ge=0.0)
    monthly_limit: float = Field(..., gt=0.0)
    monthly_utilization: float = Field(default=0.0, ge=0.0)
    hourly_spend_by_provider: dict[str, float] = Field(default_factory=dict)


# =============================================================================
# ERROR MODELS
# =============================================================================


class ErrorCodes:
    """
    Standard error codes for API responses.

    These codes enable programmatic error handling by clients
    without parsing human-readable messages.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    ALL_MODELS_FAILED = "ALL_MODELS_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class ErrorDetail(BaseModel):
    """
    Detailed error information for API error responses.

    Provides machine-readable error codes, human-readable messages,
    and optional field information for validation errors.
    """

    code: str = Field(
        ...,
        description="Machine-readable error code for programmatic handling",
    )

    message: str = Field(
        ...,
        description="Human-readable error message",
    )

    field: str | None = Field(
        default=None,
        description="Field that caused the error (for validation errors)",
    )


class ErrorResponse(BaseModel):
    """
    Standard error response format for all API errors.

    Example:
        {
            "error": {
                "code": "BUDGET_EXCEEDED",
                "message": "Daily budget limit would be exceeded"
            }
        }
    """

    error: ErrorDetail = Field(
        ...,
        description="Error details",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": {
                        "code": "ALL_MODELS_FAILED",
                        "message": "All models failed (tried claude-3-haiku, gpt-3.5-turbo)",
                    }
                }
            ]
        }
    )


# =============================================================================
# HEALTH MODELS
# =============================================================================


class ComponentHealth(BaseModel):
    """
    Health status of an individual system component.

    Used to report status of the counter store, metrics sink and
    providers in health check responses.
    """

    name: str = Field(
        ...,
        description="Component name (e.g., 'store', 'metrics_sink', 'openai')",
    )

    status: Literal["healthy", "degraded", "unhealthy"] = Field(
        ...,
        description="Component health status",
    )

    latency_ms: float | None = Field(
        default=None,
        ge=0.0,
        description="Last known latency for this component",
    )

    message: str | None = Field(
        default=None,
        description="Additional status information or error details",
    )


class HealthResponse(BaseModel):
    """
    Response from the /health endpoint.

    Storage outages only degrade the service: budget checks fail open and
    cache/metrics fail silent, so requests keep flowing.
    """

    status: Literal["healthy", "degraded", "unhealthy"] = Field(
        ...,
        description="Overall service health status",
    )

    service: str = Field(
        default="ai-model-router",
        description="Service identifier",
    )

    version: str = Field(
        ...,
        description="Application version",
    )

    components: list[ComponentHealth] = Field(
        default_factory=list,
        description="Health status of individual components",
    )

    uptime_seconds: float | None = Field(
        default=None,
        ge=0.0,
        description="Time since service start in seconds",
    )
