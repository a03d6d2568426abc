"""
Dispatcher Handlers - Provider-specific inference execution.

This module handles the actual API calls to model providers (OpenAI,
Anthropic Claude, Google Gemini), hiding provider differences behind one
adapter interface:

- ProviderResult: Standardized output of any provider call
- RateLimitState: Client-side per-minute request/token window
- BaseProvider: Shared request shaping, error classification, rate limiting
- OpenAIProvider / ClaudeProvider / GeminiProvider: SDK-specific calls
- ProviderFactory: Lazy adapter creation keyed by provider name

Adapters never return partial failures: a call either produces a
ProviderResult or raises a ProviderError subclass, which the router turns
into a fallback to the next candidate model.
"""

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from anthropic import AsyncAnthropic
from google import genai
from google.genai import types as genai_types
from openai import AsyncOpenAI

from ai_router.config import get_settings
from ai_router.errors import (
    ProviderAuthenticationError,
    ProviderBadRequestError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderRateLimitError,
    ProviderServerError,
)
from ai_router.registry.models import ModelCandidate, ModelProvider
from ai_router.schemas.routing import AIRequest, TaskType

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW_SECONDS = 60.0
CHARS_PER_TOKEN = 4


# =============================================================================
# SYSTEM PROMPTS
# =============================================================================

DEFAULT_SYSTEM_PROMPTS: dict[TaskType, str] = {
    TaskType.BUSINESS_PLAN: (
        "You are an expert business strategist and consultant. Generate "
        "comprehensive, actionable business plans with detailed market analysis, "
        "financial projections, and implementation strategies. Focus on "
        "practical, executable recommendations."
    ),
    TaskType.MARKET_ANALYSIS: (
        "You are a market research analyst. Provide thorough market analysis "
        "including trends, competitive landscape, target demographics, and market "
        "opportunities. Support your analysis with data-driven insights."
    ),
    TaskType.SENTIMENT_ANALYSIS: (
        "You are a sentiment analysis expert. Analyze the emotional tone, opinion, "
        "and sentiment of the provided text. Provide a clear classification "
        "(positive, negative, neutral) with confidence scores and reasoning."
    ),
    TaskType.GENERAL: (
        "You are a helpful AI assistant. Provide clear, accurate, and helpful "
        "responses to user queries. Be concise but comprehensive in your answers."
    ),
}

CLAUDE_SYSTEM_PROMPTS: dict[TaskType, str] = {
    TaskType.BUSINESS_PLAN: (
        "You are an expert business strategist with deep knowledge of market "
        "dynamics, financial modeling, and strategic planning. Create "
        "comprehensive business plans that include:\n"
        "- Executive summary with clear value proposition\n"
        "- Market analysis with TAM/SAM/SOM breakdown\n"
        "- Competitive analysis and differentiation strategy\n"
        "- Business model and revenue streams\n"
        "- Financial projections and funding requirements\n"
        "- Implementation timeline and milestones\n"
        "- Risk analysis and mitigation strategies\n"
        "Be specific, actionable, and data-driven in your recommendations."
    ),
    TaskType.MARKET_ANALYSIS: (
        "You are a market research expert with expertise in industry analysis, "
        "consumer behavior, and competitive intelligence. Cover market size and "
        "growth, customer segments, the competitive landscape, opportunities and "
        "threats, and relevant technology trends. Support your analysis with "
        "logical reasoning and identify key insights."
    ),
    TaskType.SENTIMENT_ANALYSIS: (
        "You are a sentiment analysis expert. Analyze the provided text for "
        "overall sentiment (positive, negative, neutral) with a confidence score, "
        "emotional tone and intensity, and the key sentiment-bearing phrases. "
        "Provide clear, objective analysis with supporting evidence."
    ),
    TaskType.GENERAL: (
        "You are a helpful AI assistant. Provide thoughtful, accurate, and "
        "helpful responses. Be clear and concise while being comprehensive."
    ),
}

GEMINI_SYSTEM_PROMPTS: dict[TaskType, str] = {
    **DEFAULT_SYSTEM_PROMPTS,
    TaskType.MARKET_ANALYSIS: (
        "You are a market research expert specializing in industry analysis, "
        "consumer trends, and competitive intelligence. Provide thorough market "
        "analysis including market size, growth trends, customer segmentation, "
        "competitive landscape, and market opportunities. Use current market "
        "conditions when possible."
    ),
}


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class ProviderResult:
    """
    Result from model inference.

    Attributes:
        content: Generated text
        tokens_used: Total tokens (input + output) billed for the call
        cost: tokens_used * candidate cost_per_token, USD
        finish_reason: Provider stop reason
        latency_ms: Provider call time in milliseconds
    """

    content: str
    tokens_used: int
    cost: float
    finish_reason: str | None
    latency_ms: float


@dataclass
class RateLimitState:
    """
    Client-side request and token budget for a one-minute window.

    The window resets lazily on the first check after it expires.
    """

    requests_per_minute: int
    tokens_per_minute: int
    requests_remaining: int = -1
    tokens_remaining: int = -1
    reset_at: float = 0.0

    def __post_init__(self) -> None:
        if self.requests_remaining < 0:
            self.requests_remaining = self.requests_per_minute
        if self.tokens_remaining < 0:
            self.tokens_remaining = self.tokens_per_minute
        if not self.reset_at:
            self.reset_at = time.monotonic() + RATE_LIMIT_WINDOW_SECONDS

    def _maybe_reset(self) -> None:
        now = time.monotonic()
        if now > self.reset_at:
            self.requests_remaining = self.requests_per_minute
            self.tokens_remaining = self.tokens_per_minute
            self.reset_at = now + RATE_LIMIT_WINDOW_SECONDS

    def is_limited(self) -> bool:
        """True when the current window has no requests or tokens left."""
        self._maybe_reset()
        return self.requests_remaining <= 0 or self.tokens_remaining <= 0

    def wait_time(self) -> float:
        """Seconds until the window resets, 0 if not limited."""
        if not self.is_limited():
            return 0.0
        return max(0.0, self.reset_at - time.monotonic())

    def consume(self, tokens: int) -> None:
        """Account for one completed call."""
        self.requests_remaining = max(0, self.requests_remaining - 1)
        self.tokens_remaining = max(0, self.tokens_remaining - tokens)

    def snapshot(self) -> dict:
        self._maybe_reset()
        return {
            "requests_per_minute": self.requests_per_minute,
            "tokens_per_minute": self.tokens_per_minute,
            "requests_remaining": self.requests_remaining,
            "tokens_remaining": self.tokens_remaining,
            "reset_in_seconds": round(max(0.0, self.reset_at - time.monotonic()), 1),
        }


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================


def classify_error(error: Exception, provider: str, model: str) -> ProviderError:
    """
    Map an SDK exception to a ProviderError subclass by HTTP status.

    The OpenAI and Anthropic SDKs expose `status_code`, google-genai exposes
    `code`. Errors without a status (timeouts, connection resets) become a
    plain ProviderError.
    """
    status = getattr(error, "status_code", None) or getattr(error, "code", None)
    if not isinstance(status, int):
        status = None

    label = provider.capitalize()
    if status == 429:
        cls, message = ProviderRateLimitError, f"{label} rate limit exceeded: {error}"
    elif status in (401, 403):
        cls, message = ProviderAuthenticationError, f"{label} authentication failed: {error}"
    elif status == 400:
        cls, message = ProviderBadRequestError, f"{label} bad request: {error}"
    elif status is not None and status >= 500:
        cls, message = ProviderServerError, f"{label} server error: {error}"
    else:
        cls, message = ProviderError, f"{label} API error: {error}"

    return cls(message, provider=provider, model=model, status_code=status)


def estimate_upper_bound_cost(request: AIRequest, candidate: ModelCandidate) -> float:
    """Upper-bound cost: ~4 chars per input token plus the full output budget."""
    input_tokens = math.ceil(request.content_length / CHARS_PER_TOKEN)
    output_tokens = request.effective_max_tokens
    return (input_tokens + output_tokens) * candidate.cost_per_token


# =============================================================================
# PROVIDERS
# =============================================================================


class BaseProvider(ABC):
    """
    Common behaviour of all provider adapters.

    Subclasses implement _complete() with one SDK call and return
    (content, tokens_used, finish_reason). Everything else (prompt shaping,
    rate limiting, cost, error mapping) happens here.

    The SDK client is created lazily so constructing an adapter never
    touches the network. Tests inject a mock client instead.
    """

    name: str = ""
    system_prompts: dict[TaskType, str] = DEFAULT_SYSTEM_PROMPTS
    requests_per_minute: int = 0
    tokens_per_minute: int = 0
    health_check_model: str = ""

    def __init__(self, api_key: str, client=None) -> None:
        self._api_key = api_key
        self._client = client
        self.rate_limits = RateLimitState(
            requests_per_minute=self.requests_per_minute,
            tokens_per_minute=self.tokens_per_minute,
        )

    @property
    def client(self):
        """Get SDK client (lazy initialization)."""
        if self._client is None:
            self._client = self._create_client()
            logger.debug(f"Initialized {self.name} client")
        return self._client

    @abstractmethod
    def _create_client(self):
        """Build the SDK client from the API key."""

    @abstractmethod
    async def _complete(
        self,
        model: str,
        system_prompt: str,
        user_content: str,
        max_tokens: int,
        temperature: float,
    ) -> tuple[str, int, str | None]:
        """Perform one completion call."""

    def get_system_prompt(self, task_type: TaskType) -> str:
        return self.system_prompts.get(task_type, self.system_prompts[TaskType.GENERAL])

    @staticmethod
    def build_user_content(request: AIRequest) -> str:
        if request.context:
            return f"Context: {request.context}\n\nTask: {request.prompt}"
        return request.prompt

    @staticmethod
    def output_token_limit(request: AIRequest, candidate: ModelCandidate) -> int:
        return min(request.effective_max_tokens, candidate.max_tokens)

    async def generate(self, request: AIRequest, candidate: ModelCandidate) -> ProviderResult:
        """
        Run a request against one candidate model.

        Raises:
            ProviderRateLimitError: The local window is exhausted or the API returned 429
            ProviderError: Any other failure, classified by HTTP status
        """
        if self.rate_limits.is_limited():
            raise ProviderRateLimitError(
                f"{self.name} client-side rate limit reached, "
                f"resets in {self.rate_limits.wait_time():.0f}s",
                provider=self.name,
                model=candidate.name,
                status_code=429,
            )

        start_time = time.perf_counter()
        try:
            content, tokens_used, finish_reason = await self._complete(
                model=candidate.api_name,
                system_prompt=self.get_system_prompt(request.task_type),
                user_content=self.build_user_content(request),
                max_tokens=self.output_token_limit(request, candidate),
                temperature=request.effective_temperature,
            )
        except ProviderError:
            raise
        except Exception as e:
            raise classify_error(e, self.name, candidate.name) from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        self.rate_limits.consume(tokens_used)

        logger.info(
            f"{self.name} call completed: model={candidate.name}, "
            f"latency={latency_ms:.0f}ms, tokens={tokens_used}"
        )

        return ProviderResult(
            content=content,
            tokens_used=tokens_used,
            cost=tokens_used * candidate.cost_per_token,
            finish_reason=finish_reason,
            latency_ms=latency_ms,
        )

    async def health_check(self) -> dict:
        """Issue a tiny completion against the provider's cheapest model."""
        start_time = time.perf_counter()
        try:
            await self._complete(
                model=self.health_check_model,
                system_prompt=self.get_system_prompt(TaskType.GENERAL),
                user_content="Health check",
                max_tokens=10,
                temperature=0.0,
            )
        except Exception as e:
            return {"status": "unhealthy", "error": str(e)}

        return {
            "status": "healthy",
            "latency_ms": round((time.perf_counter() - start_time) * 1000, 1),
            "model": self.health_check_model,
        }

    def get_rate_limits(self) -> dict:
        return {"provider": self.name, "rate_limits": self.rate_limits.snapshot()}


class OpenAIProvider(BaseProvider):
    """GPT models through the Chat Completions API."""

    name = ModelProvider.OPENAI.value
    requests_per_minute = 500
    tokens_per_minute = 40_000
    health_check_model = "gpt-3.5-turbo"

    def _create_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=self._api_key)

    async def _complete(self, model, system_prompt, user_content, max_tokens, temperature):
        response = await self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )

        completion = response.choices[0]
        tokens_used = response.usage.total_tokens if response.usage else 0
        return completion.message.content or "", tokens_used, completion.finish_reason


class ClaudeProvider(BaseProvider):
    """Claude models through the Anthropic Messages API."""

    name = ModelProvider.CLAUDE.value
    system_prompts = CLAUDE_SYSTEM_PROMPTS
    requests_per_minute = 4000
    tokens_per_minute = 400_000
    health_check_model = "claude-3-haiku-20240307"

    def _create_client(self) -> AsyncAnthropic:
        return AsyncAnthropic(api_key=self._api_key)

    async def _complete(self, model, system_prompt, user_content, max_tokens, temperature):
        response = await self.client.messages.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_content}],
        )

        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        tokens_used = response.usage.input_tokens + response.usage.output_tokens
        return content, tokens_used, response.stop_reason


class GeminiProvider(BaseProvider):
    """Gemini models through the google-genai async client."""

    name = ModelProvider.GEMINI.value
    system_prompts = GEMINI_SYSTEM_PROMPTS
    requests_per_minute = 1000
    tokens_per_minute = 1_000_000
    health_check_model = "gemini-pro"

    def _create_client(self) -> genai.Client:
        return genai.Client(api_key=self._api_key)

    async def _complete(self, model, system_prompt, user_content, max_tokens, temperature):
        response = await self.client.aio.models.generate_content(
            model=model,
            contents=user_content,
            config=genai_types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=temperature,
                max_output_tokens=max_tokens,
                top_k=40,
                top_p=0.95,
            ),
        )

        content = response.text or ""

        usage = response.usage_metadata
        if usage is not None and usage.total_token_count:
            tokens_used = usage.total_token_count
        else:
            # No usage metadata: estimate from characters
            tokens_used = math.ceil((len(user_content) + len(content)) / CHARS_PER_TOKEN)

        finish_reason = "completed"
        if response.candidates and response.candidates[0].finish_reason is not None:
            reason = response.candidates[0].finish_reason
            finish_reason = getattr(reason, "value", str(reason))

        return content, tokens_used, finish_reason


# =============================================================================
# FACTORY
# =============================================================================

PROVIDER_CLASSES: dict[ModelProvider, type[BaseProvider]] = {
    ModelProvider.OPENAI: OpenAIProvider,
    ModelProvider.CLAUDE: ClaudeProvider,
    ModelProvider.GEMINI: GeminiProvider,
}


class ProviderFactory:
    """
    Lazy registry of provider adapters.

    Adapters are created on first use so a deployment only needs keys for
    the providers it actually routes to. A missing key surfaces as
    ProviderNotConfiguredError, which the router treats like any other
    provider failure and falls over.
    """

    def __init__(self, settings=None) -> None:
        self._settings = settings or get_settings()
        self._providers: dict[ModelProvider, BaseProvider] = {}

    def _api_key(self, provider: ModelProvider) -> str | None:
        secret = {
            ModelProvider.OPENAI: self._settings.openai_api_key,
            ModelProvider.CLAUDE: self._settings.anthropic_api_key,
            ModelProvider.GEMINI: self._settings.gemini_api_key,
        }[provider]
        if secret is None:
            return None
        return secret.get_secret_value() or None

    def configured_providers(self) -> list[str]:
        """Names of providers with an API key (or a registered adapter)."""
        return [
            p.value
            for p in ModelProvider
            if p in self._providers or self._api_key(p) is not None
        ]

    def register(self, provider: ModelProvider | str, adapter: BaseProvider) -> None:
        """Install a pre-built adapter, replacing any existing one."""
        self._providers[ModelProvider(provider)] = adapter

    def get_provider(self, provider: ModelProvider | str) -> BaseProvider:
        """
        Get the adapter for a provider, creating it on first use.

        Raises:
            ProviderNotConfiguredError: If no API key is configured
            ProviderError: If the provider name is unknown
        """
        try:
            key = ModelProvider(provider)
        except ValueError:
            raise ProviderError(f"Unknown provider: {provider}", provider=str(provider)) from None

        if key not in self._providers:
            api_key = self._api_key(key)
            if api_key is None:
                raise ProviderNotConfiguredError(
                    f"No API key configured for provider: {key.value}",
                    provider=key.value,
                )
            self._providers[key] = PROVIDER_CLASSES[key](api_key)
            logger.info(f"Created {key.value} provider")

        return self._providers[key]

    async def check_health(self) -> dict[str, dict]:
        """Health of every adapter created so far."""
        results = {}
        for key, adapter in self._providers.items():
            try:
                results[key.value] = await adapter.health_check()
            except Exception as e:
                results[key.value] = {"status": "unhealthy", "error": str(e)}
        return results

    def get_rate_limits(self) -> dict[str, dict]:
        """Client-side rate-limit windows of every adapter created so far."""
        return {key.value: adapter.get_rate_limits() for key, adapter in self._providers.items()}

