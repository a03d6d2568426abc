"""
Router module: model selection and request orchestration.

This module contains:
- selector.py: Task-aware fallback chain selection (pure, no I/O)
- engine.py: AIModelRouter state machine and singleton wiring

Public API:
- ModelSelector: Chooses the ordered candidate models for a request
- AIModelRouter: Budget check, cache, selection, fallback, metrics
- create_router(): Build a router from settings
- get_router(): Get the singleton router
- reset_router(): Drop the singleton (tests)
"""

from ai_router.router.selector import ModelSelector

from ai_router.router.engine import (
    AIModelRouter,
    create_router,
    get_router,
    reset_router,
)

__all__ = [
    # Selection
    "ModelSelector",
    # Orchestration
    "AIModelRouter",
    "create_router",
    "get_router",
    "reset_router",
]
