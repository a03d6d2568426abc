"""
Pytest configuration and shared fixtures.

Provides scripted providers, in-memory backends and router builders for
the AI Model Router test suite.

IMPORTANT: Environment variables must be set BEFORE importing ai_router
modules that use pydantic-settings, as Settings validates on first use.
"""

import os

# Set test environment variables before importing ai_router modules
os.environ["OPENAI_API_KEY"] = "test-key-not-real"
os.environ["ANTHROPIC_API_KEY"] = "test-key-not-real"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["REDIS_URL"] = ""
os.environ["DATABASE_URL"] = ""
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DEBUG"] = "false"

# Now safe to import everything else
import pytest
from unittest.mock import AsyncMock, MagicMock

from ai_router.cache.response_cache import ResponseCache
from ai_router.cache.store import InMemoryStore
from ai_router.dispatcher.handlers import ProviderFactory
from ai_router.metrics.cost import CostOptimizer
from ai_router.metrics.monitor import PerformanceMonitor
from ai_router.metrics.store import InMemoryMetricsSink
from ai_router.registry.models import ModelProvider, ModelRegistry
from ai_router.router.engine import AIModelRouter
from ai_router.router.selector import ModelSelector

from tests.fixtures import ScriptedProvider, make_settings


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "asyncio: mark test as async")
    config.addinivalue_line(
        "markers", "integration: mark test as requiring real API calls"
    )


@pytest.fixture(autouse=True)
def reset_singletons():
    """
    Reset all singleton instances between tests.

    This ensures each test starts with a clean state.
    """
    yield

    from ai_router.config import get_settings

    get_settings.cache_clear()

    from ai_router.router.engine import reset_router

    reset_router()

    from ai_router.registry import models

    models._registry_instance = None


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings():
    """Default test settings (daily limit $10, monthly $100)."""
    return make_settings(daily_budget_limit=10.0, monthly_budget_limit=100.0)


@pytest.fixture
def registry():
    """Registry with catalog prices (no overrides)."""
    return ModelRegistry(cost_overrides={})


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def sink():
    return InMemoryMetricsSink()


@pytest.fixture
def providers():
    """One scripted provider per ModelProvider, keyed by provider name."""
    return {p.value: ScriptedProvider(p.value) for p in ModelProvider}


@pytest.fixture
def build_router(settings, registry, store, sink, providers):
    """
    Factory fixture building an AIModelRouter over in-memory backends.

    Usage:
        router = build_router()
        router = build_router(store=FailingStore(), settings=make_settings(...))
    """

    def _build(settings=settings, store=store, sink=sink, providers=providers):
        factory = ProviderFactory(settings)
        for name, provider in providers.items():
            factory.register(name, provider)

        return AIModelRouter(
            cost_optimizer=CostOptimizer(store, settings),
            cache=ResponseCache(store, settings),
            selector=ModelSelector(registry, settings),
            monitor=PerformanceMonitor(store, sink, settings),
            providers=factory,
            settings=settings,
            store=store,
        )

    return _build


@pytest.fixture
def router(build_router):
    """Router with default settings and all providers succeeding."""
    return build_router()


@pytest.fixture
def mock_openai_response():
    """Create a mock OpenAI chat completion."""
    response = MagicMock()
    response.choices = [
        MagicMock(message=MagicMock(content="Positive sentiment."), finish_reason="stop")
    ]
    response.usage = MagicMock(prompt_tokens=100, completion_tokens=50, total_tokens=150)
    return response


@pytest.fixture
def mock_openai_client(mock_openai_response):
    """Create a fully mocked AsyncOpenAI client."""
    mock = AsyncMock()
    mock.chat = MagicMock()
    mock.chat.completions = MagicMock()
    mock.chat.completions.create = AsyncMock(return_value=mock_openai_response)
    return mock


@pytest.fixture
def mock_anthropic_response():
    """Create a mock Anthropic Messages response."""
    response = MagicMock()
    response.content = [MagicMock(type="text", text="Here is your plan.")]
    response.usage = MagicMock(input_tokens=40, output_tokens=60)
    response.stop_reason = "end_turn"
    return response


@pytest.fixture
def mock_anthropic_client(mock_anthropic_response):
    """Create a fully mocked AsyncAnthropic client."""
    mock = AsyncMock()
    mock.messages = MagicMock()
    mock.messages.create = AsyncMock(return_value=mock_anthropic_response)
    return mock


@pytest.fixture
def mock_gemini_response():
    """Create a mock google-genai GenerateContentResponse."""
    response = MagicMock()
    response.text = "Market is growing."
    response.usage_metadata = MagicMock(total_token_count=42)
    response.candidates = [MagicMock(finish_reason=MagicMock(value="STOP"))]
    return response


@pytest.fixture
def mock_gemini_client(mock_gemini_response):
    """Create a fully mocked google-genai Client (async surface only)."""
    mock = MagicMock()
    mock.aio.models.generate_content = AsyncMock(return_value=mock_gemini_response)
    return mock
