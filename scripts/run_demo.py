#!/usr/bin/env python3
"""
Demo Runner Script

Sends a set of sample requests through the AI Model Router and reports
which models were chosen and what the traffic would cost compared with
sending everything to the premium model.

This script:
1. Loads sample requests (built-in set or a JSON file)
2. Previews the fallback chain for each request (default), or routes it
   for real with --live
3. Tracks chosen models, fallbacks and cache hits
4. Calculates cost metrics (routed vs premium-only)
5. Generates a summary report

Usage:
    python scripts/run_demo.py                          # Preview built-in samples
    python scripts/run_demo.py --utilization 0.9        # Preview under budget pressure
    python scripts/run_demo.py --requests reqs.json     # Preview requests from a file
    python scripts/run_demo.py --live --verbose         # Route for real (needs API keys)
"""

import argparse
import asyncio
import json
import sys
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from ai_router.config import configure_logging, get_settings
from ai_router.dispatcher.handlers import estimate_upper_bound_cost
from ai_router.errors import RouterError
from ai_router.registry.models import get_model_registry
from ai_router.router.engine import create_router
from ai_router.schemas.routing import AIRequest

PREMIUM_MODEL = "claude-3-opus"

SAMPLE_REQUESTS = [
    {"task_type": "sentiment_analysis", "prompt": "This app is great!", "priority": "low"},
    {"task_type": "sentiment_analysis", "prompt": "Support never answered my ticket."},
    {"task_type": "market_analysis", "prompt": "Size the European e-bike market"},
    {"task_type": "market_analysis", "prompt": "Who competes with Notion in 2026?"},
    {
        "task_type": "business_plan",
        "prompt": "Draft a business plan for a meal-prep subscription",
        "context": "Target market: busy professionals in Berlin",
        "priority": "high",
    },
    {"task_type": "business_plan", "prompt": "Plan a neighbourhood bakery"},
    {"task_type": "general", "prompt": "Explain compound interest briefly"},
    {"task_type": "general", "prompt": "Explain compound interest briefly"},
]


@dataclass
class RequestResult:
    """Outcome of one sample request."""

    request: AIRequest
    model: str
    reasoning: str = ""
    cost_usd: float = 0.0
    premium_cost_usd: float = 0.0
    cached: bool = False
    fallback_used: bool = False
    error: str | None = None


@dataclass
class DemoResults:
    """Aggregated demo statistics."""

    mode: str
    results: list[RequestResult] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def failures(self) -> list[RequestResult]:
        return [r for r in self.results if r.error]

    @property
    def total_cost(self) -> float:
        return sum(r.cost_usd for r in self.results)

    @property
    def premium_cost(self) -> float:
        return sum(r.premium_cost_usd for r in self.results)


def load_requests(path: str | None) -> list[AIRequest]:
    """Load requests from a JSON list, or the built-in samples."""
    raw = SAMPLE_REQUESTS if path is None else json.loads(Path(path).read_text())
    return [AIRequest.model_validate(item) for item in raw]


async def run_demo(
    requests: list[AIRequest],
    live: bool = False,
    utilization: float = 0.0,
    verbose: bool = False,
) -> DemoResults:
    """
    Run the sample requests through the router.

    Args:
        requests: Requests to process
        live: Call providers instead of previewing the selection
        utilization: Budget utilization used for previews
        verbose: Whether to print each request result

    Returns:
        DemoResults with chosen models and costs
    """
    router = create_router()
    premium = get_model_registry().candidate(PREMIUM_MODEL)
    results = DemoResults(mode="live" if live else "preview")
    start_time = time.time()

    print(f"\nProcessing {len(requests)} requests ({results.mode})...")
    print("-" * 60)

    try:
        for i, request in enumerate(requests, 1):
            if live:
                try:
                    response = await router.route(request)
                    result = RequestResult(
                        request=request,
                        model=response.model,
                        cost_usd=response.cost,
                        premium_cost_usd=response.tokens_used * premium.cost_per_token,
                        cached=response.cached,
                        fallback_used=response.fallback_used,
                    )
                except RouterError as e:
                    result = RequestResult(request=request, model="none", error=str(e))
            else:
                preview = await router.preview_selection(request, utilization)
                primary = preview.models[0]
                result = RequestResult(
                    request=request,
                    model=primary.name,
                    reasoning=preview.reasoning,
                    cost_usd=estimate_upper_bound_cost(request, primary),
                    premium_cost_usd=estimate_upper_bound_cost(request, premium),
                )

            results.results.append(result)

            if verbose:
                status = "ERROR" if result.error else ("CACHED" if result.cached else "OK")
                print(
                    f"[{i:3d}/{len(requests)}] {status:7s} | "
                    f"{request.task_type.value:18s} | "
                    f"{result.model:16s} | "
                    f"${result.cost_usd:.6f}"
                )
                if result.reasoning:
                    print(f"          {result.reasoning}")
    finally:
        await router.close()

    results.elapsed_seconds = time.time() - start_time
    return results


def print_report(results: DemoResults) -> None:
    """Print a formatted report of demo results."""

    print("\n" + "=" * 60)
    print("AI MODEL ROUTER DEMO RESULTS")
    print("=" * 60)

    print(f"\nMode: {results.mode}")
    print(f"Requests: {len(results.results)}")
    print(f"Total time: {results.elapsed_seconds:.2f}s")

    print("\nBy Model:")
    print(f"  {'Model':<18} {'Requests':>8}")
    print(f"  {'-'*18} {'-'*8}")
    for model, count in sorted(Counter(r.model for r in results.results).items()):
        print(f"  {model:<18} {count:>8}")

    if results.mode == "live":
        print(f"\n  Cache hits: {sum(r.cached for r in results.results)}")
        print(f"  Fallbacks:  {sum(r.fallback_used for r in results.results)}")

    label = "actual" if results.mode == "live" else "upper bound"
    savings = results.premium_cost - results.total_cost
    savings_percent = savings / results.premium_cost * 100 if results.premium_cost else 0.0
    print(f"\nCost Analysis ({label}):")
    print(f"  Premium only ({PREMIUM_MODEL}): ${results.premium_cost:.6f}")
    print(f"  Routed:                        ${results.total_cost:.6f}")
    print(f"  Savings:                       ${savings:.6f} ({savings_percent:.1f}%)")

    if results.failures:
        print(f"\nFailures ({len(results.failures)}):")
        for r in results.failures[:10]:
            print(f"  {r.request.task_type.value}: {r.error}")

    print("\n" + "=" * 60)


def main():
    """Main entry point for the demo runner."""

    parser = argparse.ArgumentParser(
        description="Run sample requests through the AI Model Router",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_demo.py                        Preview built-in samples
  python scripts/run_demo.py --utilization 0.9      Preview under budget pressure
  python scripts/run_demo.py --requests reqs.json   Preview requests from a file
  python scripts/run_demo.py --live --verbose       Route for real
        """
    )

    parser.add_argument(
        "--requests",
        help="Path to a JSON list of requests (default: built-in samples)"
    )
    parser.add_argument(
        "--live",
        action="store_true",
        help="Call providers instead of previewing the selection"
    )
    parser.add_argument(
        "--utilization",
        type=float,
        default=0.0,
        help="Budget utilization for previews (default: 0.0)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show each request result"
    )

    args = parser.parse_args()

    configure_logging(get_settings())

    print("=" * 60)
    print("AI Model Router Demo Runner")
    print("=" * 60)

    try:
        requests = load_requests(args.requests)
    except FileNotFoundError:
        print(f"ERROR: Requests file not found: {args.requests}")
        sys.exit(1)
    except (json.JSONDecodeError, ValidationError) as e:
        print(f"ERROR: Invalid requests file: {e}")
        sys.exit(1)

    if not requests:
        print("\nNo requests to process.")
        sys.exit(1)

    results = asyncio.run(
        run_demo(
            requests,
            live=args.live,
            utilization=args.utilization,
            verbose=args.verbose,
        )
    )

    print_report(results)

    sys.exit(1 if results.failures else 0)


if __name__ == "__main__":
    main()
