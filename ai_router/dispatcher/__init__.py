"""
Dispatcher module: Provider adapters for model inference.

This module provides a unified interface for sending a request to a model
across multiple providers (OpenAI, Anthropic Claude, Google Gemini). It
handles provider-specific API calls, client-side rate limits and error
classification.

Key exports:
- ProviderResult: Standardized output from any provider
- RateLimitState: Per-minute request/token window
- BaseProvider, OpenAIProvider, ClaudeProvider, GeminiProvider: adapters
- ProviderFactory: lazy adapter registry
- classify_error(): SDK exception -> ProviderError subclass
- estimate_upper_bound_cost(): worst-case cost of a request on a candidate
"""

from ai_router.dispatcher.handlers import (
    # Data classes
    ProviderResult,
    RateLimitState,
    # Adapters
    BaseProvider,
    OpenAIProvider,
    ClaudeProvider,
    GeminiProvider,
    # Factory
    ProviderFactory,
    # Helpers
    classify_error,
    estimate_upper_bound_cost,
)

__all__ = [
    # Data classes
    "ProviderResult",
    "RateLimitState",
    # Adapters
    "BaseProvider",
    "OpenAIProvider",
    "ClaudeProvider",
    "GeminiProvider",
    # Factory
    "ProviderFactory",
    # Helpers
    "classify_error",
    "estimate_upper_bound_cost",
]
