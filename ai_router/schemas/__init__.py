"""
Schemas module: Pydantic request/response models.

This module provides validated data models for the router and its API:
- AIRequest / AIResponse: the routing contract
- Selection preview, statistics, report and budget models
- Error envelope and health check models

Example usage:
    from ai_router.schemas import AIRequest, TaskType

    request = AIRequest(task_type=TaskType.GENERAL, prompt="Summarize this")
"""

from ai_router.schemas.routing import (
    # Enums
    Priority,
    TaskType,
    # Request / response
    AIRequest,
    AIResponse,
    CandidateInfo,
    SelectionResponse,
    # Conversion utilities
    build_ai_response,
)

from ai_router.schemas.reports import (
    # Metrics models
    BudgetStatusResponse,
    CacheStats,
    ErrorStats,
    PerformanceReport,
    ProviderStats,
    ReportSummary,
    # Error models
    ErrorCodes,
    ErrorDetail,
    ErrorResponse,
    # Health models
    ComponentHealth,
    HealthResponse,
)

__all__ = [
    "TaskType",
    "Priority",
    "AIRequest",
    "AIResponse",
    "CandidateInfo",
    "SelectionResponse",
    "build_ai_response",
    "ProviderStats",
    "CacheStats",
    "ErrorStats",
    "ReportSummary",
    "PerformanceReport",
    "BudgetStatusResponse",
    "ErrorCodes",
    "ErrorDetail",
    "ErrorResponse",
    "ComponentHealth",
    "HealthResponse",
]
