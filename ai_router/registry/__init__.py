"""
Registry module: Model catalog and fallback-chain types.

This module contains:
- models.py: provider/model catalog with pricing and context metadata

Public API:
- ModelTier: Enum for model tier classification
- ModelProvider: Enum for inference providers
- ModelCapability: Enum for model capabilities
- ModelMetadata: Pydantic model for catalog entries
- ModelCandidate: One entry of a fallback chain
- ModelConfig: Ordered fallback chain plus routing reasoning
- ModelRegistry: Central registry class
- get_model_registry: Singleton accessor function
"""

from ai_router.registry.models import (
    ModelCandidate,
    ModelCapability,
    ModelConfig,
    ModelMetadata,
    ModelProvider,
    ModelRegistry,
    ModelTier,
    get_model_registry,
)

__all__ = [
    "ModelTier",
    "ModelProvider",
    "ModelCapability",
    "ModelMetadata",
    "ModelCandidate",
    "ModelConfig",
    "ModelRegistry",
    "get_model_registry",
]
