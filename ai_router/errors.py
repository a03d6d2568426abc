"""
Router errors and subsystem failure policies.

Each subsystem degrades in one fixed way when its dependency fails:

    BUDGET    fail_open    storage outage -> request allowed
    CACHE     fail_silent  storage outage -> cache miss / write dropped
    METRICS   fail_silent  sink outage    -> metric dropped
    PROVIDER  fail_over    API failure    -> next candidate model

Callers only ever see BudgetExceededError or AllModelsFailedError.
"""

from enum import Enum


class FailurePolicy(str, Enum):
    """How a subsystem behaves when its own dependency fails."""

    FAIL_OPEN = "fail_open"
    FAIL_OVER = "fail_over"
    FAIL_SILENT = "fail_silent"


class Subsystem(str, Enum):
    """Router collaborators with an explicit failure policy."""

    BUDGET = "budget"
    CACHE = "cache"
    METRICS = "metrics"
    PROVIDER = "provider"


SUBSYSTEM_POLICIES: dict[Subsystem, FailurePolicy] = {
    Subsystem.BUDGET: FailurePolicy.FAIL_OPEN,
    Subsystem.CACHE: FailurePolicy.FAIL_SILENT,
    Subsystem.METRICS: FailurePolicy.FAIL_SILENT,
    Subsystem.PROVIDER: FailurePolicy.FAIL_OVER,
}


class RouterError(Exception):
    """Base class for errors surfaced by the router."""


class BudgetExceededError(RouterError):
    """The request would push daily or monthly spend over its limit."""

    def __init__(self, reason: str, current_spend: float = 0.0, estimated_cost: float = 0.0):
        super().__init__(reason)
        self.reason = reason
        self.current_spend = current_spend
        self.estimated_cost = estimated_cost


class ProviderError(RouterError):
    """A single provider call failed."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        model: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code


class ProviderRateLimitError(ProviderError):
    """Provider returned 429 or the local request window is exhausted."""


class ProviderAuthenticationError(ProviderError):
    """Provider rejected the credentials (401/403)."""


class ProviderBadRequestError(ProviderError):
    """Provider rejected the request payload (400)."""


class ProviderServerError(ProviderError):
    """Provider-side failure (5xx)."""


class ProviderNotConfiguredError(ProviderError):
    """No API key is configured for the provider."""


class AllModelsFailedError(RouterError):
    """
    Every candidate in the fallback chain raised.

    Attributes:
        attempts: (model name, exception) pairs in the order they were tried
        last_error: The exception raised by the final candidate
    """

    def __init__(self, attempts: list[tuple[str, Exception]]):
        self.attempts = attempts
        self.last_error = attempts[-1][1] if attempts else None
        tried = ", ".join(name for name, _ in attempts) or "none"
        detail = f": {self.last_error}" if self.last_error else ""
        super().__init__(f"All models failed (tried {tried}){detail}")
