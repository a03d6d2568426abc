"""
Pydantic Schemas for AI Routing

This module defines the request and response contract of the router:
- AIRequest: one unit of work (task type, prompt, sampling parameters)
- AIResponse: generated content plus model, cost and routing flags
- SelectionResponse: preview of the fallback chain for a request

AIRequest is immutable once built. Unknown task types are coerced to
"general" at this boundary instead of being rejected, so callers on older
clients still get routed.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from ai_router.dispatcher.handlers import ProviderResult
    from ai_router.registry.models import ModelCandidate

logger = logging.getLogger(__name__)


DEFAULT_MAX_TOKENS = 4000
DEFAULT_TEMPERATURE = 0.7


# =============================================================================
# ENUMERATIONS
# =============================================================================


class TaskType(str, Enum):
    """
    Closed set of AI request categories driving the routing policy.

    BUSINESS_PLAN: Long-form strategy documents, may carry large context
    MARKET_ANALYSIS: Market sizing, competition, trends
    SENTIMENT_ANALYSIS: Short classification of opinion/tone
    GENERAL: Anything else
    """

    BUSINESS_PLAN = "business_plan"
    MARKET_ANALYSIS = "market_analysis"
    SENTIMENT_ANALYSIS = "sentiment_analysis"
    GENERAL = "general"


class Priority(str, Enum):
    """Caller-declared request priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =============================================================================
# REQUEST MODELS
# =============================================================================


class AIRequest(BaseModel):
    """
    Request body for the /route endpoint and input to AIModelRouter.route().

    Example:
        {
            "task_type": "sentiment_analysis",
            "prompt": "This app is great!",
            "priority": "low"
        }
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "task_type": "sentiment_analysis",
                    "prompt": "This app is great!",
                    "priority": "low",
                },
                {
                    "task_type": "business_plan",
                    "prompt": "Draft a business plan for a meal-prep subscription",
                    "context": "Target market: busy professionals in Berlin",
                    "priority": "high",
                    "max_tokens": 2000,
                },
            ]
        },
    )

    task_type: TaskType = Field(
        default=TaskType.GENERAL,
        description="Category of work; unknown values are routed as 'general'",
    )

    prompt: str = Field(
        ...,
        min_length=1,
        description="The instruction or text to process",
    )

    context: str | None = Field(
        default=None,
        description="Optional supporting material prepended to the prompt",
    )

    max_tokens: int | None = Field(
        default=None,
        gt=0,
        description="Maximum output tokens (default 4000, capped by the model)",
    )

    temperature: float | None = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature (default 0.7)",
    )

    priority: Priority = Field(
        default=Priority.MEDIUM,
        description="Request priority hint",
    )

    user_id: str | None = Field(
        default=None,
        max_length=128,
        description="Caller identifier, recorded in metrics only",
    )

    session_id: str | None = Field(
        default=None,
        max_length=128,
        description="Session identifier, recorded in metrics only",
    )

    @field_validator("task_type", mode="before")
    @classmethod
    def coerce_unknown_task_type(cls, v: Any) -> Any:
        """Fall through to GENERAL rather than failing validation."""
        if isinstance(v, TaskType):
            return v
        try:
            return TaskType(v)
        except ValueError:
            logger.debug(f"Unknown task type {v!r}, routing as general")
            return TaskType.GENERAL

    @field_validator("prompt")
    @classmethod
    def validate_prompt_not_whitespace(cls, v: str) -> str:
        """Ensure prompt is not empty or whitespace only."""
        if not v.strip():
            raise ValueError("Prompt cannot be empty or whitespace only")
        return v

    @property
    def content_length(self) -> int:
        """Characters of prompt plus context."""
        return len(self.prompt) + len(self.context or "")

    @property
    def effective_max_tokens(self) -> int:
        """Requested max tokens with the default applied."""
        return self.max_tokens or DEFAULT_MAX_TOKENS

    @property
    def effective_temperature(self) -> float:
        """Requested temperature with the default applied."""
        return DEFAULT_TEMPERATURE if self.temperature is None else self.temperature


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class AIResponse(BaseModel):
    """
    Result of routing one request.

    Produced either from a live provider call (cached=False) or from the
    response cache (cached=True). All fields are always serialized.
    """

    content: str = Field(..., description="Generated text")

    model: str = Field(..., description="Model ID that produced the content")

    provider: str = Field(..., description="Provider that served the model")

    tokens_used: int = Field(default=0, ge=0, description="Total tokens consumed")

    cost: float = Field(default=0.0, ge=0.0, description="Cost in USD")

    latency_ms: float = Field(
        default=0.0, ge=0.0, description="End-to-end routing latency in milliseconds"
    )

    cached: bool = Field(default=False, description="Served from the response cache")

    fallback_used: bool = Field(
        default=False, description="A candidate other than the first one answered"
    )


class CandidateInfo(BaseModel):
    """Serialized fallback-chain entry."""

    provider: str
    name: str
    cost_per_token: float
    max_tokens: int


class SelectionResponse(BaseModel):
    """
    Response from the /select endpoint.

    Shows which fallback chain a request would get without calling any
    provider.
    """

    task_type: TaskType
    budget_utilization: float = Field(..., ge=0.0)
    models: list[CandidateInfo] = Field(..., min_length=1)
    reasoning: str


# =============================================================================
# CONVERSION UTILITIES
# =============================================================================


def build_ai_response(
    result: "ProviderResult",
    candidate: "ModelCandidate",
    latency_ms: float,
    fallback_used: bool,
) -> AIResponse:
    """
    Build an AIResponse from a provider result.

    Args:
        result: Output of a provider adapter
        candidate: The fallback-chain entry that produced it
        latency_ms: Time since the router started handling the request
        fallback_used: Whether earlier candidates failed first

    Returns:
        AIResponse with cached=False
    """
    return AIResponse(
        content=result.content,
        model=candidate.name,
        provider=candidate.provider.value,
        tokens_used=result.tokens_used,
        cost=round(result.cost, 10),
        latency_ms=latency_ms,
        cached=False,
        fallback_used=fallback_used,
    )
