"""
Cost Optimizer for AI Requests

Estimates request cost before routing and enforces daily and monthly spend
limits, using counters in the key-value store:

    budget:daily:YYYY-MM-DD               (expires after 2 days)
    budget:monthly:YYYY-MM                (expires after 35 days)
    budget:hourly:YYYY-MM-DDTHH:<provider> (expires after 7 days, reporting)

All periods are UTC. Budget checks are plain reads followed by a later
increment, so concurrent requests can overshoot a limit by a few requests.

When the store is unavailable the optimizer fails open: requests are allowed
and spend is not recorded, so an accounting outage never takes down routing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from ai_router.cache.store import KeyValueStore
from ai_router.errors import SUBSYSTEM_POLICIES, Subsystem
from ai_router.schemas.routing import AIRequest, AIResponse

logger = logging.getLogger(__name__)

DAILY_KEY_TTL = 2 * 24 * 3600
MONTHLY_KEY_TTL = 35 * 24 * 3600
HOURLY_KEY_TTL = 7 * 24 * 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def daily_key(now: datetime) -> str:
    return f"budget:daily:{now.strftime('%Y-%m-%d')}"


def monthly_key(now: datetime) -> str:
    return f"budget:monthly:{now.strftime('%Y-%m')}"


def hourly_key(now: datetime, provider: str) -> str:
    return f"budget:hourly:{now.strftime('%Y-%m-%dT%H')}:{provider}"


@dataclass
class BudgetCheck:
    """
    Outcome of a pre-routing budget check.

    Attributes:
        allowed: Whether the request may proceed
        reason: Why it was denied (None when allowed)
        current_spend: Spend before this request in the period checked (monthly
            for a monthly denial, daily otherwise), USD
        estimated_cost: Estimated cost of this request, USD
        budget_utilization: Daily spend / daily limit
    """

    allowed: bool
    current_spend: float
    estimated_cost: float
    budget_utilization: float
    reason: str | None = None


@dataclass
class BudgetStatus:
    """Current spend against both limits."""

    daily_spend: float
    daily_limit: float
    monthly_spend: float
    monthly_limit: float

    @property
    def daily_utilization(self) -> float:
        return self.daily_spend / self.daily_limit

    @property
    def monthly_utilization(self) -> float:
        return self.monthly_spend / self.monthly_limit


class CostOptimizer:
    """
    Budget guardrail in front of the provider calls.

    Example:
        optimizer = CostOptimizer(store, settings)
        check = await optimizer.check_budget(request)
        if not check.allowed:
            raise BudgetExceededError(check.reason)
        ...
        await optimizer.record_spend(response)
    """

    failure_policy = SUBSYSTEM_POLICIES[Subsystem.BUDGET]

    def __init__(self, store: KeyValueStore, settings) -> None:
        self._store = store
        self._daily_limit = settings.daily_budget_limit
        self._monthly_limit = settings.monthly_budget_limit
        self._base_costs = dict(settings.task_base_costs)

    @property
    def daily_limit(self) -> float:
        return self._daily_limit

    @property
    def monthly_limit(self) -> float:
        return self._monthly_limit

    def estimate_cost(self, request: AIRequest) -> float:
        """
        Rough USD estimate for a request.

        Task base rate times a length multiplier of max(1, chars / 1000)
        over the prompt only. Task types without a configured rate use the
        general rate.
        """
        base_cost = self._base_costs.get(
            request.task_type.value, self._base_costs["general"]
        )
        length_multiplier = max(1.0, len(request.prompt) / 1000)
        return base_cost * length_multiplier

    async def _read_float(self, key: str) -> float:
        value = await self._store.get(key)
        return float(value) if value else 0.0

    async def check_budget(self, request: AIRequest) -> BudgetCheck:
        """
        Check whether a request fits in the remaining daily and monthly budget.

        Never raises. Storage errors produce an allowed check with zero
        spend.
        """
        estimated_cost = self.estimate_cost(request)
        now = _utcnow()

        try:
            daily_spend = await self._read_float(daily_key(now))
            monthly_spend = await self._read_float(monthly_key(now))
        except Exception as e:
            logger.warning(f"Budget check failed ({self.failure_policy.value}): {e}")
            return BudgetCheck(
                allowed=True,
                current_spend=0.0,
                estimated_cost=estimated_cost,
                budget_utilization=0.0,
            )

        if daily_spend + estimated_cost > self._daily_limit:
            logger.warning(
                f"Daily budget exceeded: spend ${daily_spend:.4f} + "
                f"estimate ${estimated_cost:.4f} > ${self._daily_limit:.2f}"
            )
            return BudgetCheck(
                allowed=False,
                reason="Daily budget limit would be exceeded",
                current_spend=daily_spend,
                estimated_cost=estimated_cost,
                budget_utilization=daily_spend / self._daily_limit,
            )

        if monthly_spend + estimated_cost > self._monthly_limit:
            logger.warning(
                f"Monthly budget exceeded: spend ${monthly_spend:.4f} + "
                f"estimate ${estimated_cost:.4f} > ${self._monthly_limit:.2f}"
            )
            return BudgetCheck(
                allowed=False,
                reason="Monthly budget limit would be exceeded",
                current_spend=monthly_spend,
                estimated_cost=estimated_cost,
                budget_utilization=daily_spend / self._daily_limit,
            )

        return BudgetCheck(
            allowed=True,
            current_spend=daily_spend,
            estimated_cost=estimated_cost,
            budget_utilization=daily_spend / self._daily_limit,
        )

    async def record_spend(self, response: AIResponse) -> None:
        """Add a response's cost to the daily, monthly and hourly counters."""
        now = _utcnow()
        increments = (
            (daily_key(now), DAILY_KEY_TTL),
            (monthly_key(now), MONTHLY_KEY_TTL),
            (hourly_key(now, response.provider), HOURLY_KEY_TTL),
        )

        try:
            for key, ttl in increments:
                await self._store.incrbyfloat(key, response.cost)
                await self._store.expire(key, ttl)
        except Exception as e:
            logger.warning(f"Failed to record spend ({self.failure_policy.value}): {e}")
            return

        logger.debug(f"Recorded ${response.cost:.6f} spend for {response.provider}")

    async def get_budget_status(self) -> BudgetStatus:
        """Current daily and monthly spend. Unreadable counters count as zero."""
        now = _utcnow()
        try:
            daily_spend = await self._read_float(daily_key(now))
            monthly_spend = await self._read_float(monthly_key(now))
        except Exception as e:
            logger.warning(f"Failed to read budget status: {e}")
            daily_spend = monthly_spend = 0.0

        return BudgetStatus(
            daily_spend=daily_spend,
            daily_limit=self._daily_limit,
            monthly_spend=monthly_spend,
            monthly_limit=self._monthly_limit,
        )

    async def get_hourly_spend(self, hour: datetime | None = None) -> dict[str, float]:
        """
        Per-provider spend for one UTC hour (default: the current hour).

        Returns:
            Mapping of provider name to USD spent
        """
        hour = hour or _utcnow()
        prefix = f"budget:hourly:{hour.strftime('%Y-%m-%dT%H')}:"

        spend: dict[str, float] = {}
        try:
            for key in await self._store.keys(f"{prefix}*"):
                spend[key[len(prefix):]] = await self._read_float(key)
        except Exception as e:
            logger.warning(f"Failed to read hourly spend: {e}")
            return {}

        return spend
