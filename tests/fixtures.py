"""
Test Fixtures

Shared request samples for the AI Model Router test suite, grouped by the
selector rule they are expected to trigger, plus scripted providers and
failing backends used to exercise fallback and fail-open paths.
"""

from ai_router.cache.store import InMemoryStore
from ai_router.config import Settings
from ai_router.dispatcher.handlers import ProviderResult
from ai_router.errors import ProviderServerError
from ai_router.metrics.store import InMemoryMetricsSink
from ai_router.registry.models import ModelCandidate
from ai_router.schemas.routing import AIRequest

SENTIMENT_LOW_PRIORITY = AIRequest(
    task_type="sentiment_analysis",
    prompt="This app is great!",
    priority="low",
)

SENTIMENT_MEDIUM_PRIORITY = AIRequest(
    task_type="sentiment_analysis",
    prompt="The update broke my favourite feature.",
)

BUSINESS_PLAN_HIGH_PRIORITY = AIRequest(
    task_type="business_plan",
    prompt="Draft a business plan for a meal-prep subscription",
    context="Target market: busy professionals in Berlin",
    priority="high",
)

BUSINESS_PLAN_LONG_CONTEXT = AIRequest(
    task_type="business_plan",
    prompt="Summarize the attached market research into a business plan",
    context="x" * 100_001,
)

MARKET_ANALYSIS = AIRequest(
    task_type="market_analysis",
    prompt="Size the European e-bike market",
)

GENERAL_SHORT = AIRequest(task_type="general", prompt="Hi")

# (request, budget utilization, expected model order)
SELECTION_CASES = [
    (BUSINESS_PLAN_LONG_CONTEXT, 0.95, ["claude-3-opus", "gpt-4-turbo"]),
    (BUSINESS_PLAN_HIGH_PRIORITY, 0.5, ["claude-3-opus", "gpt-4-turbo"]),
    (BUSINESS_PLAN_HIGH_PRIORITY, 0.81, ["claude-3-sonnet", "claude-3-haiku"]),
    (
        AIRequest(task_type="business_plan", prompt="Plan a bakery"),
        0.2,
        ["claude-3-opus", "gpt-4-turbo"],
    ),
    (MARKET_ANALYSIS, 0.9, ["claude-3-haiku", "gemini-pro"]),
    (MARKET_ANALYSIS, 0.8, ["gemini-pro", "claude-3-sonnet", "gpt-4-turbo"]),
    (SENTIMENT_LOW_PRIORITY, 0.0, ["claude-3-haiku", "gpt-3.5-turbo"]),
    (SENTIMENT_MEDIUM_PRIORITY, 0.85, ["claude-3-haiku", "gpt-3.5-turbo"]),
    (SENTIMENT_MEDIUM_PRIORITY, 0.1, ["gpt-4-turbo", "claude-3-sonnet"]),
    (GENERAL_SHORT, 0.99, ["claude-3-haiku", "gpt-3.5-turbo"]),
    (GENERAL_SHORT, 0.0, ["claude-3-sonnet", "gpt-4-turbo"]),
]

DISTINCT_PROMPTS = [
    "Summarize the quarterly report",
    "Translate 'good morning' to German",
    "List three uses for a paperclip",
    "Explain compound interest briefly",
    "Write a haiku about routers",
]


# =============================================================================
# TEST DOUBLES
# =============================================================================


def make_settings(**overrides) -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, **overrides)


class ScriptedProvider:
    """
    Provider stand-in with scripted outcomes per model.

    Models listed in `failing` raise ProviderServerError; every other model
    returns `content` with `tokens` tokens, priced from the candidate.
    """

    def __init__(self, name: str, failing=(), tokens: int = 100, content: str | None = None):
        self.name = name
        self.failing = set(failing)
        self.tokens = tokens
        self.content = content
        self.calls: list[str] = []

    async def generate(self, request: AIRequest, candidate: ModelCandidate) -> ProviderResult:
        self.calls.append(candidate.name)
        if candidate.name in self.failing:
            raise ProviderServerError(
                f"{self.name} server error: 503 unavailable",
                provider=self.name,
                model=candidate.name,
                status_code=503,
            )
        return ProviderResult(
            content=self.content or f"{candidate.name} says hello",
            tokens_used=self.tokens,
            cost=self.tokens * candidate.cost_per_token,
            finish_reason="stop",
            latency_ms=12.5,
        )

    async def health_check(self) -> dict:
        return {"status": "healthy", "model": "scripted"}

    def get_rate_limits(self) -> dict:
        return {"provider": self.name, "rate_limits": {}}


class FailingStore(InMemoryStore):
    """Store whose every operation fails like an unreachable Redis."""

    async def _fail(self, *args, **kwargs):
        raise ConnectionError("Connection refused")

    get = set = setex = incrby = incrbyfloat = expire = _fail
    keys = delete = lpush = ltrim = lrange = ping = _fail


class FailingSink(InMemoryMetricsSink):
    """Metrics sink whose inserts fail like an unreachable database."""

    async def insert(self, record) -> None:
        raise ConnectionError("Connection refused")
