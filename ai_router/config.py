"""
AI Model Router Configuration Module

This module manages application settings and environment variables using
pydantic-settings for type-safe configuration management.

Environment variables are loaded from .env file or system environment.
Provider API keys use SecretStr to prevent accidental logging.

Budget limits, per-task base rates and per-model prices are configuration,
not constants: provider pricing drifts and each deployment sets its own
guardrails.
"""

from functools import lru_cache
from typing import Literal
import logging
import sys

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


VALID_TASK_TYPES = {
    "business_plan",
    "market_analysis",
    "sentiment_analysis",
    "general",
}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Pydantic Settings automatically reads from:
    1. Environment variables
    2. .env file in working directory
    3. Default values defined here

    Provider keys are optional: a provider without a key is treated as a
    failing candidate and the router falls over to the next model.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars
    )

    openai_api_key: SecretStr | None = Field(
        default=None, description="OpenAI API key (GPT models)"
    )

    anthropic_api_key: SecretStr | None = Field(
        default=None, description="Anthropic API key (Claude models)"
    )

    gemini_api_key: SecretStr | None = Field(
        default=None, description="Google AI API key (Gemini models)"
    )

    redis_url: str = Field(
        default="",
        description="Redis URL for cache and counters (empty = in-process store)",
    )

    database_url: str = Field(
        default="",
        description="SQLAlchemy async URL for the metrics table (empty = in-process sink)",
    )

    daily_budget_limit: float = Field(
        default=50.0, gt=0, description="Maximum AI spend per UTC day in USD"
    )

    monthly_budget_limit: float = Field(
        default=1000.0, gt=0, description="Maximum AI spend per UTC month in USD"
    )

    enable_cost_optimization: bool = Field(
        default=True,
        description="Feed budget utilization into model selection",
    )

    high_utilization_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Budget utilization above which cheaper models are preferred",
    )

    long_context_threshold: int = Field(
        default=100_000,
        gt=0,
        description="Prompt+context length (chars) that forces a long-context model",
    )

    task_base_costs: dict[str, float] = Field(
        default_factory=lambda: {
            "business_plan": 0.10,
            "market_analysis": 0.05,
            "sentiment_analysis": 0.01,
            "general": 0.02,
        },
        description="Estimated USD cost of a 1K-char request per task type",
    )

    model_cost_overrides: dict[str, float] = Field(
        default_factory=dict,
        description="Per-token price overrides keyed by model id",
    )

    cache_enabled: bool = Field(default=True, description="Enable response caching")

    cache_default_ttl: int = Field(
        default=3600, gt=0, description="Default cache TTL in seconds"
    )

    cache_ttl_multiplier: float = Field(
        default=1.0, gt=0, description="Environment-level multiplier for cache TTLs"
    )

    cache_key_length: int = Field(
        default=16,
        ge=8,
        le=64,
        description="Number of SHA-256 hex characters kept in cache keys",
    )

    metrics_enabled: bool = Field(
        default=True, description="Enable metric rows and rolling counters"
    )

    metrics_retention_seconds: int = Field(
        default=7 * 24 * 3600, gt=0, description="Expiry of rolling metric counters"
    )

    latency_sample_size: int = Field(
        default=1000, gt=0, description="Latency samples kept per provider-hour"
    )

    metrics_create_schema: bool = Field(
        default=False, description="Create the metrics table on startup"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Application log level"
    )

    host: str = Field(default="0.0.0.0", description="Server bind host")

    port: int = Field(default=8000, description="Server bind port")

    debug: bool = Field(default=False, description="Enable debug mode")

    @field_validator("task_base_costs")
    @classmethod
    def validate_task_base_costs(cls, v: dict[str, float]) -> dict[str, float]:
        """Ensure base rates are keyed by known task types and non-negative."""
        unknown = set(v) - VALID_TASK_TYPES
        if unknown:
            raise ValueError(f"task_base_costs has unknown task types: {sorted(unknown)}")
        if any(rate < 0 for rate in v.values()):
            raise ValueError("task_base_costs must be non-negative")
        if "general" not in v:
            raise ValueError("task_base_costs must define a 'general' rate")
        return v

    @field_validator("model_cost_overrides")
    @classmethod
    def validate_model_cost_overrides(cls, v: dict[str, float]) -> dict[str, float]:
        """Per-token prices cannot be negative."""
        if any(cost < 0 for cost in v.values()):
            raise ValueError("model_cost_overrides must be non-negative")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Returns cached settings instance.

    Using lru_cache ensures settings are loaded once and reused,
    avoiding repeated file reads and environment parsing.

    Returns:
        Settings: The application settings singleton.
    """
    return Settings()


def configure_logging(settings: Settings) -> None:
    """
    Configure application logging based on settings.

    Sets up structured logging with timestamps and reduces noise
    from the provider SDKs and their HTTP libraries.

    Args:
        settings: The application settings instance.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)
