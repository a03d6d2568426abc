"""
Model Selector - task-aware fallback chain selection.

Pure decision logic, no I/O: given a request and the current daily budget
utilization, return an ordered list of candidate models and the rule that
chose them. The router tries the candidates strictly in order.

Routing table:

    business_plan       long context (> 100K chars)  opus, gpt-4-turbo
                        high priority, budget ok     opus, gpt-4-turbo
                        budget > 80%                 sonnet, haiku
                        default                      opus, gpt-4-turbo
    market_analysis     budget > 80%                 haiku, gemini-pro
                        default                      gemini-pro, sonnet, gpt-4-turbo
    sentiment_analysis  budget > 80% or low priority haiku, gpt-3.5-turbo
                        default                      gpt-4-turbo, sonnet
    general             budget > 80%                 haiku, gpt-3.5-turbo
                        default                      sonnet, gpt-4-turbo

The long-context rule wins over priority and budget because only the
200K-context models can hold the request at all.
"""

import logging

from ai_router.config import get_settings
from ai_router.registry.models import ModelConfig, ModelRegistry, get_model_registry
from ai_router.schemas.routing import AIRequest, Priority, TaskType

logger = logging.getLogger(__name__)


class ModelSelector:
    """
    Chooses the fallback chain for a request.

    Example:
        selector = ModelSelector()
        config = selector.select_model(request, budget_utilization=0.35)
        for candidate in config.models:
            ...
    """

    def __init__(self, registry: ModelRegistry | None = None, settings=None) -> None:
        settings = settings or get_settings()
        self._registry = registry or get_model_registry()
        self._high_utilization = settings.high_utilization_threshold
        self._long_context = settings.long_context_threshold

    def _chain(self, reasoning: str, *model_ids: str) -> ModelConfig:
        return ModelConfig(
            models=[self._registry.candidate(model_id) for model_id in model_ids],
            reasoning=reasoning,
        )

    def select_model(self, request: AIRequest, budget_utilization: float) -> ModelConfig:
        """
        Select the ordered candidate list for a request.

        Args:
            request: The request being routed
            budget_utilization: Daily spend / daily limit (0.0 when unknown)

        Returns:
            ModelConfig with at least one candidate and the rule that fired
        """
        match request.task_type:
            case TaskType.BUSINESS_PLAN:
                config = self._select_for_business_plan(request, budget_utilization)
            case TaskType.MARKET_ANALYSIS:
                config = self._select_for_market_analysis(budget_utilization)
            case TaskType.SENTIMENT_ANALYSIS:
                config = self._select_for_sentiment(request, budget_utilization)
            case _:
                config = self._select_general(budget_utilization)

        logger.debug(
            f"Selected {[m.name for m in config.models]} for "
            f"{request.task_type.value}: {config.reasoning}"
        )
        return config

    def _select_for_business_plan(self, request: AIRequest, utilization: float) -> ModelConfig:
        high_utilization = utilization > self._high_utilization

        if request.content_length > self._long_context:
            return self._chain(
                "Long context detected, Claude Opus required for 200K token support",
                "claude-3-opus",
                "gpt-4-turbo",
            )

        if request.priority == Priority.HIGH and not high_utilization:
            return self._chain(
                "High priority request with available budget, using premium models",
                "claude-3-opus",
                "gpt-4-turbo",
            )

        if high_utilization:
            return self._chain(
                "Budget optimization enabled, using cost-effective Claude models",
                "claude-3-sonnet",
                "claude-3-haiku",
            )

        return self._chain(
            "Standard business plan generation with Claude reasoning capabilities",
            "claude-3-opus",
            "gpt-4-turbo",
        )

    def _select_for_market_analysis(self, utilization: float) -> ModelConfig:
        if utilization > self._high_utilization:
            return self._chain(
                "Budget optimization enabled, using cost-effective models",
                "claude-3-haiku",
                "gemini-pro",
            )

        return self._chain(
            "Market analysis optimized for Gemini multimodal and real-time capabilities",
            "gemini-pro",
            "claude-3-sonnet",
            "gpt-4-turbo",
        )

    def _select_for_sentiment(self, request: AIRequest, utilization: float) -> ModelConfig:
        if utilization > self._high_utilization or request.priority == Priority.LOW:
            return self._chain(
                "Cost optimization enabled, using cheaper models for sentiment analysis",
                "claude-3-haiku",
                "gpt-3.5-turbo",
            )

        return self._chain(
            "High accuracy sentiment analysis with OpenAI proven performance",
            "gpt-4-turbo",
            "claude-3-sonnet",
        )

    def _select_general(self, utilization: float) -> ModelConfig:
        if utilization > self._high_utilization:
            return self._chain(
                "Budget optimization enabled, using cost-effective models",
                "claude-3-haiku",
                "gpt-3.5-turbo",
            )

        return self._chain(
            "Balanced general-purpose routing with good quality-to-cost ratio",
            "claude-3-sonnet",
            "gpt-4-turbo",
        )
