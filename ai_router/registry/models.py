"""
Model Registry

This module defines the model catalog the selector draws fallback chains from:
- Claude 3 Opus / Sonnet / Haiku: 200K context, premium to economy pricing
- GPT-4 Turbo: strong general reasoning, 128K context
- GPT-3.5 Turbo: cheap, 16K context
- Gemini Pro: multimodal and real-time oriented, 1M context

Each model entry includes:
- Model ID and provider
- Cost per token (USD), overridable through settings
- Maximum context tokens
- Capabilities used when reasoning about routing tables

Selection itself lives in router/selector.py; this module only answers
"what does model X cost and what can it hold".
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ai_router.config import get_settings


class ModelTier(str, Enum):
    """Classification of models by capability and cost."""

    PREMIUM = "premium"  # Most capable, most expensive
    BALANCED = "balanced"  # Mid-tier reasoning
    ECONOMY = "economy"  # Fast, cheap, bulk


class ModelProvider(str, Enum):
    """Supported inference providers."""

    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"


class ModelCapability(str, Enum):
    """Model capabilities referenced by the routing tables."""

    REASONING = "reasoning"
    LONG_CONTEXT = "long_context"  # >= 200K tokens
    MULTIMODAL = "multimodal"
    REAL_TIME = "real_time"
    LOW_COST = "low_cost"


class ModelMetadata(BaseModel):
    """
    Complete catalog metadata for a registered model.

    This class holds all information needed to:
    1. Build fallback chains in the selector
    2. Dispatch requests to the correct provider API model
    3. Compute per-request cost
    """

    model_id: str = Field(
        ...,
        description="Unique identifier used in routing tables and responses",
    )

    display_name: str = Field(
        ...,
        description="Human-readable model name",
    )

    tier: ModelTier = Field(
        ...,
        description="Model tier classification",
    )

    provider: ModelProvider = Field(
        ...,
        description="Inference provider",
    )

    api_model_name: str = Field(
        ...,
        description="Model name used in provider API calls",
    )

    cost_per_token: float = Field(
        ...,
        ge=0,
        description="Cost in USD per token (input and output)",
    )

    max_tokens: int = Field(
        ...,
        gt=0,
        description="Maximum context size in tokens",
    )

    capabilities: list[ModelCapability] = Field(
        default_factory=list,
        description="List of model capabilities",
    )


class ModelCandidate(BaseModel):
    """One entry of a fallback chain."""

    model_config = ConfigDict(frozen=True)

    provider: ModelProvider
    name: str
    cost_per_token: float = Field(..., ge=0)
    max_tokens: int = Field(..., gt=0)
    api_model_name: str = ""

    @property
    def api_name(self) -> str:
        """Name sent to the provider API (falls back to the catalog name)."""
        return self.api_model_name or self.name


class ModelConfig(BaseModel):
    """
    Ordered fallback chain produced by the selector for one request.

    Attributes:
        models: Candidates in the order they must be tried
        reasoning: Which routing rule fired
    """

    model_config = ConfigDict(frozen=True)

    models: list[ModelCandidate] = Field(..., min_length=1)
    reasoning: str = Field(..., min_length=1)

    @property
    def primary(self) -> ModelCandidate:
        """First candidate in the chain."""
        return self.models[0]


class ModelRegistry:
    """
    Central registry of all available models.

    The registry follows a singleton-like pattern where model definitions
    are loaded once and reused throughout the application lifecycle.

    Attributes:
        _models: Dictionary mapping model IDs to their metadata
    """

    def __init__(self, cost_overrides: dict[str, float] | None = None) -> None:
        self._models: dict[str, ModelMetadata] = {}
        self._initialize_models()
        if cost_overrides is None:
            cost_overrides = get_settings().model_cost_overrides
        self._apply_cost_overrides(cost_overrides)

    def _initialize_models(self) -> None:
        """Register all available models with their default pricing."""

        self._register(
            ModelMetadata(
                model_id="claude-3-opus",
                display_name="Claude 3 Opus",
                tier=ModelTier.PREMIUM,
                provider=ModelProvider.CLAUDE,
                api_model_name="claude-3-opus-20240229",
                cost_per_token=0.000075,
                max_tokens=200_000,
                capabilities=[ModelCapability.REASONING, ModelCapability.LONG_CONTEXT],
            )
        )

        self._register(
            ModelMetadata(
                model_id="claude-3-sonnet",
                display_name="Claude 3 Sonnet",
                tier=ModelTier.BALANCED,
                provider=ModelProvider.CLAUDE,
                api_model_name="claude-3-sonnet-20240229",
                cost_per_token=0.000015,
                max_tokens=200_000,
                capabilities=[ModelCapability.REASONING, ModelCapability.LONG_CONTEXT],
            )
        )

        self._register(
            ModelMetadata(
                model_id="claude-3-haiku",
                display_name="Claude 3 Haiku",
                tier=ModelTier.ECONOMY,
                provider=ModelProvider.CLAUDE,
                api_model_name="claude-3-haiku-20240307",
                cost_per_token=0.00000025,
                max_tokens=200_000,
                capabilities=[ModelCapability.LONG_CONTEXT, ModelCapability.LOW_COST],
            )
        )

        self._register(
            ModelMetadata(
                model_id="gpt-4-turbo",
                display_name="GPT-4 Turbo",
                tier=ModelTier.PREMIUM,
                provider=ModelProvider.OPENAI,
                api_model_name="gpt-4-turbo",
                cost_per_token=0.00003,
                max_tokens=128_000,
                capabilities=[ModelCapability.REASONING],
            )
        )

        self._register(
            ModelMetadata(
                model_id="gpt-3.5-turbo",
                display_name="GPT-3.5 Turbo",
                tier=ModelTier.ECONOMY,
                provider=ModelProvider.OPENAI,
                api_model_name="gpt-3.5-turbo",
                cost_per_token=0.000002,
                max_tokens=16_000,
                capabilities=[ModelCapability.LOW_COST],
            )
        )

        self._register(
            ModelMetadata(
                model_id="gemini-pro",
                display_name="Gemini Pro",
                tier=ModelTier.BALANCED,
                provider=ModelProvider.GEMINI,
                api_model_name="gemini-pro",
                cost_per_token=0.0000005,
                max_tokens=1_000_000,
                capabilities=[
                    ModelCapability.MULTIMODAL,
                    ModelCapability.REAL_TIME,
                    ModelCapability.LONG_CONTEXT,
                    ModelCapability.LOW_COST,
                ],
            )
        )

    def _apply_cost_overrides(self, overrides: dict[str, float]) -> None:
        """Replace default per-token prices with configured ones."""
        for model_id, cost in overrides.items():
            model = self._models.get(model_id)
            if model is None:
                raise ValueError(f"Cost override for unknown model: {model_id}")
            self._models[model_id] = model.model_copy(update={"cost_per_token": cost})

    def _register(self, model: ModelMetadata) -> None:
        """Register a model in the registry."""
        self._models[model.model_id] = model

    def get_model(self, model_id: str) -> ModelMetadata | None:
        """
        Retrieve model metadata by ID.

        Args:
            model_id: The unique identifier of the model

        Returns:
            ModelMetadata if found, None otherwise
        """
        return self._models.get(model_id)

    def candidate(self, model_id: str) -> ModelCandidate:
        """
        Build a fallback-chain entry for a registered model.

        Raises:
            KeyError: If the model is not registered
        """
        model = self.get_model(model_id)
        if model is None:
            raise KeyError(f"Unknown model: {model_id}")
        return ModelCandidate(
            provider=model.provider,
            name=model.model_id,
            cost_per_token=model.cost_per_token,
            max_tokens=model.max_tokens,
            api_model_name=model.api_model_name,
        )

    def list_models(self) -> list[ModelMetadata]:
        """Return all registered models."""
        return list(self._models.values())


_registry_instance: ModelRegistry | None = None


def get_model_registry() -> ModelRegistry:
    """
    Get the global model registry instance.

    Uses lazy initialization to create the registry only when needed.
    This ensures consistent pricing throughout the application.

    Returns:
        The singleton ModelRegistry instance
    """
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = ModelRegistry()
    return _registry_instance
