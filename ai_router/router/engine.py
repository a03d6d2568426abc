"""
Router Engine - per-request orchestration of the AI model router.

Each call to route() walks one state machine:

    BUDGET_CHECK -> (denied) fail with BudgetExceededError
    CACHE_LOOKUP -> (hit) return cached response
    SELECT_MODEL
    TRY_PROVIDER[0..n-1] -> (success) CACHE_STORE -> RECORD_METRICS -> RETURN
                         -> (all failed) fail with AllModelsFailedError

Candidates are tried strictly one after another; there is no racing and no
retry of the same model. Collaborators are injected so the engine itself
holds no I/O clients. Each degrades on its own terms: budget storage fails
open, cache and metrics fail silent, providers fail over.
"""

import logging
import time

from ai_router.cache.response_cache import ResponseCache
from ai_router.cache.store import KeyValueStore, get_store
from ai_router.config import get_settings
from ai_router.dispatcher.handlers import ProviderFactory
from ai_router.errors import (
    SUBSYSTEM_POLICIES,
    AllModelsFailedError,
    BudgetExceededError,
    Subsystem,
)
from ai_router.metrics.cost import CostOptimizer
from ai_router.metrics.monitor import PerformanceMonitor
from ai_router.metrics.store import get_metrics_sink
from ai_router.registry.models import get_model_registry
from ai_router.router.selector import ModelSelector
from ai_router.schemas.routing import (
    AIRequest,
    AIResponse,
    CandidateInfo,
    SelectionResponse,
    build_ai_response,
)

logger = logging.getLogger(__name__)


class AIModelRouter:
    """
    Routes AI requests across providers with budgets, caching and fallback.

    Usage:
        router = create_router(settings)
        response = await router.route(AIRequest(task_type="general", prompt="Hi"))

    Side effects per request:
        - Fresh success: one cache write, one metrics record, one spend record
        - Cache hit: hit counters only
        - Failure: one error record
    """

    def __init__(
        self,
        cost_optimizer: CostOptimizer,
        cache: ResponseCache,
        selector: ModelSelector,
        monitor: PerformanceMonitor,
        providers: ProviderFactory,
        settings=None,
        store: KeyValueStore | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.cost_optimizer = cost_optimizer
        self.cache = cache
        self.selector = selector
        self.monitor = monitor
        self.providers = providers
        self.store = store
        self._cost_optimization = settings.enable_cost_optimization

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return round((time.perf_counter() - start_time) * 1000, 2)

    async def route(self, request: AIRequest) -> AIResponse:
        """
        Produce a response for a request.

        Raises:
            BudgetExceededError: Daily or monthly spend would exceed its limit
            AllModelsFailedError: Every candidate in the fallback chain failed
        """
        start_time = time.perf_counter()

        budget = await self.cost_optimizer.check_budget(request)
        if not budget.allowed:
            error = BudgetExceededError(
                budget.reason or "Budget limit would be exceeded",
                current_spend=budget.current_spend,
                estimated_cost=budget.estimated_cost,
            )
            logger.warning(f"Request denied: {error.reason}")
            await self.monitor.record_error(request, error)
            raise error

        cache_key = self.cache.generate_cache_key(request)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            response = cached.model_copy(update={"latency_ms": self._elapsed_ms(start_time)})
            await self.monitor.record_cache_hit(request, response)
            logger.info(f"Cache hit for {request.task_type.value} request ({cache_key})")
            return response

        utilization = budget.budget_utilization if self._cost_optimization else 0.0
        config = self.selector.select_model(request, utilization)
        logger.info(
            f"Routing {request.task_type.value} request: "
            f"{[m.name for m in config.models]} ({config.reasoning})"
        )

        attempts: list[tuple[str, Exception]] = []
        for index, candidate in enumerate(config.models):
            try:
                provider = self.providers.get_provider(candidate.provider)
                result = await provider.generate(request, candidate)
            except Exception as e:
                logger.warning(
                    f"Model {candidate.name} failed "
                    f"({SUBSYSTEM_POLICIES[Subsystem.PROVIDER].value}): {e}"
                )
                attempts.append((candidate.name, e))
                continue

            response = build_ai_response(
                result,
                candidate,
                latency_ms=self._elapsed_ms(start_time),
                fallback_used=index > 0,
            )

            await self.cache.set(cache_key, response, self.cache.calculate_ttl(request))
            await self.monitor.record(request, response)
            await self.cost_optimizer.record_spend(response)

            return response

        error = AllModelsFailedError(attempts)
        logger.error(str(error))
        await self.monitor.record_error(request, error)
        raise error

    async def preview_selection(
        self,
        request: AIRequest,
        budget_utilization: float | None = None,
    ) -> SelectionResponse:
        """
        Show the fallback chain a request would get, without calling providers.

        Args:
            request: The request to preview
            budget_utilization: Override; defaults to the current daily utilization
        """
        if budget_utilization is None:
            if self._cost_optimization:
                status = await self.cost_optimizer.get_budget_status()
                budget_utilization = status.daily_utilization
            else:
                budget_utilization = 0.0

        config = self.selector.select_model(request, budget_utilization)
        return SelectionResponse(
            task_type=request.task_type,
            budget_utilization=budget_utilization,
            models=[
                CandidateInfo(
                    provider=m.provider.value,
                    name=m.name,
                    cost_per_token=m.cost_per_token,
                    max_tokens=m.max_tokens,
                )
                for m in config.models
            ],
            reasoning=config.reasoning,
        )

    async def close(self) -> None:
        """Release the store connection and the metrics engine."""
        await self.monitor.close()
        if self.store is not None:
            await self.store.close()


def create_router(settings=None) -> AIModelRouter:
    """
    Build a router with the backends selected by settings.

    Redis and the SQL metrics table are used when their URLs are configured,
    in-process fallbacks otherwise.
    """
    settings = settings or get_settings()
    store = get_store(settings)

    return AIModelRouter(
        cost_optimizer=CostOptimizer(store, settings),
        cache=ResponseCache(store, settings),
        selector=ModelSelector(get_model_registry(), settings),
        monitor=PerformanceMonitor(store, get_metrics_sink(settings), settings),
        providers=ProviderFactory(settings),
        settings=settings,
        store=store,
    )


_router_instance: AIModelRouter | None = None


def get_router() -> AIModelRouter:
    """
    Get the global router instance.

    Creates the router on first call. Subsequent calls return the same
    instance so the store and metrics engine are shared across requests.

    Returns:
        The AIModelRouter singleton
    """
    global _router_instance

    if _router_instance is None:
        _router_instance = create_router()

    return _router_instance


def reset_router() -> None:
    """
    Reset the global router instance.

    Primarily for testing. Does not close connections; call close() first
    when the router owns live clients.
    """
    global _router_instance
    _router_instance = None
