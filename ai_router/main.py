"""
AI Model Router: FastAPI Application Entry Point

This module initializes the FastAPI application and defines the endpoints:
- /health: Health check endpoint
- /config: Non-sensitive configuration values
- /models: Model catalog
- /select: Preview the fallback chain for a request
- /route: Route a request to a model
- /budget: Current spend against daily and monthly limits
- /metrics: Rolling performance report (hour or day)
- /metrics/cache: Cache counters and namespace summary
- /cache: Administrative cache invalidation
- /providers: Configured providers, rate-limit windows, optional health

The application uses a lifespan context manager to:
1. Load configuration and configure logging
2. Build the router and its storage backends
3. Optionally create the metrics table
4. Close connections on shutdown
"""

from contextlib import asynccontextmanager
from typing import Literal
import logging
import time

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ai_router import __version__
from ai_router.cache.response_cache import CACHE_NAMESPACE
from ai_router.config import Settings, configure_logging, get_settings
from ai_router.errors import AllModelsFailedError, BudgetExceededError
from ai_router.metrics.reporter import MetricsReporter
from ai_router.metrics.store import SQLMetricsSink
from ai_router.registry import get_model_registry
from ai_router.router.engine import AIModelRouter, get_router, reset_router
from ai_router.schemas import (
    AIRequest,
    AIResponse,
    BudgetStatusResponse,
    ComponentHealth,
    ErrorCodes,
    ErrorResponse,
    HealthResponse,
    PerformanceReport,
    SelectionResponse,
)

logger = logging.getLogger(__name__)

_start_time: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup/shutdown events.

    On startup:
    - Loads configuration from environment
    - Configures logging
    - Builds the router (store, metrics sink, providers)
    - Creates the metrics table when METRICS_CREATE_SCHEMA is set

    On shutdown:
    - Closes the store and metrics engine
    """
    settings = get_settings()
    configure_logging(settings)

    logger.info("=" * 60)
    logger.info("AI Model Router starting up...")
    logger.info("=" * 60)
    logger.info(f"Daily budget: ${settings.daily_budget_limit:.2f}")
    logger.info(f"Monthly budget: ${settings.monthly_budget_limit:.2f}")
    logger.info(
        f"Cost optimization: {'enabled' if settings.enable_cost_optimization else 'disabled'}"
    )
    logger.info(f"Response cache: {'enabled' if settings.cache_enabled else 'disabled'}")
    logger.info(f"Metrics: {'enabled' if settings.metrics_enabled else 'disabled'}")
    logger.info(f"Debug mode: {'enabled' if settings.debug else 'disabled'}")

    router = get_router()

    configured = router.providers.configured_providers()
    if configured:
        logger.info(f"Providers configured: {', '.join(configured)}")
    else:
        logger.warning("No provider API keys configured; every route will fail over")

    if settings.metrics_create_schema and isinstance(router.monitor.sink, SQLMetricsSink):
        await router.monitor.sink.create_schema()

    global _start_time
    _start_time = time.time()

    logger.info("=" * 60)
    logger.info("AI Model Router ready to accept requests")

    yield  # Application runs here

    logger.info("AI Model Router shutting down...")
    await router.close()
    reset_router()


app = FastAPI(
    title="AI Model Router",
    description="Cost-aware routing of AI requests across OpenAI, Claude and Gemini",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """
    Root endpoint with API information.
    """
    return {
        "name": "AI Model Router",
        "description": "Cost-aware AI model routing with caching and fallback",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "config": "/config",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check system health and component status.",
)
async def health_check(router: AIModelRouter = Depends(get_router)):
    """
    Health check endpoint for monitoring and orchestration.

    Checks:
    - Key-value store reachability (cache, budgets, counters)
    - Metrics sink type
    - Provider key configuration
    - System uptime

    A store outage only degrades the service: budget checks fail open and
    caching/metrics are skipped.
    """
    components = []
    overall_status = "healthy"

    if router.store is not None:
        start = time.perf_counter()
        try:
            await router.store.ping()
            components.append(
                ComponentHealth(
                    name="store",
                    status="healthy",
                    latency_ms=round((time.perf_counter() - start) * 1000, 2),
                    message=type(router.store).__name__,
                )
            )
        except Exception as e:
            components.append(ComponentHealth(name="store", status="unhealthy", message=str(e)))
            overall_status = "degraded"

    components.append(
        ComponentHealth(
            name="metrics_sink",
            status="healthy" if router.monitor.enabled else "degraded",
            message=type(router.monitor.sink).__name__,
        )
    )

    configured = router.providers.configured_providers()
    if configured:
        components.append(
            ComponentHealth(
                name="providers",
                status="healthy",
                message=f"Configured: {', '.join(configured)}",
            )
        )
    else:
        components.append(
            ComponentHealth(
                name="providers",
                status="unhealthy",
                message="No provider API keys configured",
            )
        )
        overall_status = "degraded"

    uptime = time.time() - _start_time if _start_time > 0 else 0.0

    return HealthResponse(
        status=overall_status,
        version=__version__,
        components=components,
        uptime_seconds=uptime,
    )


@app.get("/config")
async def show_config(settings: Settings = Depends(get_settings)):
    """
    Returns non-sensitive configuration values.

    API keys are SecretStr and are NOT exposed in this endpoint. Storage
    URLs are reduced to whether they are set.
    """
    return {
        "budget": {
            "daily_limit": settings.daily_budget_limit,
            "monthly_limit": settings.monthly_budget_limit,
            "task_base_costs": settings.task_base_costs,
        },
        "selection": {
            "cost_optimization": settings.enable_cost_optimization,
            "high_utilization_threshold": settings.high_utilization_threshold,
            "long_context_threshold": settings.long_context_threshold,
        },
        "cache": {
            "enabled": settings.cache_enabled,
            "default_ttl": settings.cache_default_ttl,
            "ttl_multiplier": settings.cache_ttl_multiplier,
        },
        "metrics": {
            "enabled": settings.metrics_enabled,
            "retention_seconds": settings.metrics_retention_seconds,
        },
        "storage": {
            "redis_configured": bool(settings.redis_url),
            "database_configured": bool(settings.database_url),
        },
        "server": {
            "host": settings.host,
            "port": settings.port,
            "debug": settings.debug,
        },
        "logging": {
            "level": settings.log_level,
        },
        "api_keys_configured": {
            "openai": settings.openai_api_key is not None,
            "anthropic": settings.anthropic_api_key is not None,
            "gemini": settings.gemini_api_key is not None,
        },
    }


@app.get("/models")
async def list_models():
    """
    List all registered models with their metadata.

    Returns the catalog the selector builds fallback chains from:
    identifiers, tier, provider, per-token price, context size and
    capabilities.
    """
    registry = get_model_registry()

    return {
        "models": [
            {
                "model_id": model.model_id,
                "display_name": model.display_name,
                "tier": model.tier.value,
                "provider": model.provider.value,
                "api_model_name": model.api_model_name,
                "cost_per_token": model.cost_per_token,
                "max_tokens": model.max_tokens,
                "capabilities": [cap.value for cap in model.capabilities],
            }
            for model in registry.list_models()
        ],
        "total_models": len(registry.list_models()),
    }


@app.post(
    "/select",
    response_model=SelectionResponse,
    summary="Preview model selection",
    description="Show the fallback chain a request would get without calling any provider.",
)
async def preview_selection(
    request: AIRequest,
    budget_utilization: float | None = Query(
        default=None,
        ge=0.0,
        description="Override the current daily budget utilization",
    ),
    router: AIModelRouter = Depends(get_router),
):
    """
    Dry-run the selector.

    Useful for checking which rule fires for a request before spending
    anything on it.
    """
    return await router.preview_selection(request, budget_utilization)


@app.post(
    "/route",
    response_model=AIResponse,
    responses={
        422: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Route a request",
    description="Route an AI request to the best available model.",
)
async def route_request(request: AIRequest, router: AIModelRouter = Depends(get_router)):
    """
    Main routing endpoint.

    Flow:
    1. Check the daily and monthly budget
    2. Return a cached response if one exists
    3. Select the fallback chain for the task type
    4. Try each model in order until one succeeds
    5. Cache, record metrics and spend, return

    Budget denials map to 429 and exhausted fallback chains to 502.
    """
    return await router.route(request)


@app.get(
    "/budget",
    response_model=BudgetStatusResponse,
    summary="Budget status",
    description="Current daily and monthly spend against the configured limits.",
)
async def get_budget(router: AIModelRouter = Depends(get_router)):
    """Spend so far today and this month, plus this hour's spend per provider."""
    status = await router.cost_optimizer.get_budget_status()
    hourly = await router.cost_optimizer.get_hourly_spend()

    return BudgetStatusResponse(
        daily_spend=status.daily_spend,
        daily_limit=status.daily_limit,
        daily_utilization=status.daily_utilization,
        monthly_spend=status.monthly_spend,
        monthly_limit=status.monthly_limit,
        monthly_utilization=status.monthly_utilization,
        hourly_spend_by_provider=hourly,
    )


@app.get(
    "/metrics",
    response_model=PerformanceReport,
    summary="Get metrics",
    description="Retrieve the rolling performance report.",
)
async def get_metrics(
    timeframe: Literal["hour", "day"] = Query(default="hour"),
    router: AIModelRouter = Depends(get_router),
):
    """
    Return aggregated metrics for monitoring and cost analysis.

    Includes:
    - Requests, cost, tokens and latency per provider
    - Cache hit rate for the current hour
    - Error counts for the current hour
    - Totals with request-weighted average latency
    """
    reporter = MetricsReporter(router.monitor)
    return await reporter.generate_report(timeframe)


@app.get("/metrics/cache")
async def get_cache_metrics(router: AIModelRouter = Depends(get_router)):
    """Cache hit/miss counters for the current hour and the cache namespace summary."""
    counters = await router.monitor.get_cache_stats()
    return {
        "counters": counters.model_dump(),
        "store": await router.cache.get_stats(),
    }


@app.delete("/cache")
async def invalidate_cache(
    pattern: str = Query(
        default=f"{CACHE_NAMESPACE}:*",
        description="Glob pattern of cache keys to delete",
    ),
    router: AIModelRouter = Depends(get_router),
):
    """
    Delete cached responses matching a pattern.

    Patterns are confined to the cache namespace so budget and metric
    counters in the same store cannot be deleted here.
    """
    if not pattern.startswith(f"{CACHE_NAMESPACE}:"):
        raise HTTPException(
            status_code=400,
            detail={
                "code": ErrorCodes.VALIDATION_ERROR,
                "message": f"Pattern must start with '{CACHE_NAMESPACE}:'",
                "field": "pattern",
            },
        )

    deleted = await router.cache.invalidate(pattern)
    return {"pattern": pattern, "deleted": deleted}


@app.get("/providers")
async def list_providers(
    check: bool = Query(default=False, description="Run a live health check per provider"),
    router: AIModelRouter = Depends(get_router),
):
    """
    Provider configuration and client-side rate-limit windows.

    With check=true each provider created so far is sent a tiny
    completion, which costs a few tokens.
    """
    result = {
        "configured": router.providers.configured_providers(),
        "rate_limits": router.providers.get_rate_limits(),
    }
    if check:
        result["health"] = await router.providers.check_health()
    return result


@app.exception_handler(BudgetExceededError)
async def budget_exception_handler(request: Request, exc: BudgetExceededError) -> JSONResponse:
    """Budget denials are a client-visible throttle, not a server fault."""
    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": ErrorCodes.BUDGET_EXCEEDED,
                "message": exc.reason,
            }
        },
    )


@app.exception_handler(AllModelsFailedError)
async def all_models_failed_handler(request: Request, exc: AllModelsFailedError) -> JSONResponse:
    """Every upstream model failed."""
    return JSONResponse(
        status_code=502,
        content={
            "error": {
                "code": ErrorCodes.ALL_MODELS_FAILED,
                "message": str(exc),
            }
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Returns a consistent error response format with the first validation
    error's details for client-side error handling.
    """
    errors = exc.errors()
    first_error = errors[0] if errors else {}

    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": ErrorCodes.VALIDATION_ERROR,
                "message": first_error.get("msg", "Validation failed"),
                "field": ".".join(str(loc) for loc in first_error.get("loc", [])),
            }
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTP exceptions with consistent format.
    """
    detail = exc.detail
    if isinstance(detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": detail})
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "HTTP_ERROR", "message": str(detail)}},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Logs the full exception for debugging and returns a generic error
    response to avoid leaking implementation details.
    """
    logger.exception("Unhandled exception")
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": ErrorCodes.INTERNAL_ERROR,
                "message": "An unexpected error occurred",
            }
        },
    )


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "ai_router.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
