"""Model registry with context window sizes.

Provides known context windows for common chat models plus utilities for
parsing ``provider/model`` references.
"""

from dataclasses import dataclass
from typing import Optional

DEFAULT_CONTEXT_WINDOW = 128_000


@dataclass
class ModelConfig:
    """Context limits for a known model."""

    context_window: int  # Total context window in tokens
    output_token_limit: int  # Max output tokens
    provider: str


# Known model context windows
KNOWN_MODELS: dict[str, ModelConfig] = {
    # ============= Anthropic =============
    "claude-opus-4": ModelConfig(200_000, 32_000, "anthropic"),
    "claude-opus-4-5": ModelConfig(200_000, 64_000, "anthropic"),
    "claude-sonnet-4": ModelConfig(200_000, 64_000, "anthropic"),
    "claude-sonnet-4-5": ModelConfig(200_000, 64_000, "anthropic"),
    "claude-haiku-3-5": ModelConfig(200_000, 8_192, "anthropic"),
    # ============= OpenAI =============
    "gpt-4o": ModelConfig(128_000, 16_384, "openai"),
    "gpt-4o-mini": ModelConfig(128_000, 16_384, "openai"),
    "o3": ModelConfig(200_000, 100_000, "openai"),
    "o3-mini": ModelConfig(200_000, 100_000, "openai"),
    "o4-mini": ModelConfig(200_000, 100_000, "openai"),
    # ============= Google =============
    "gemini-2.5-pro": ModelConfig(1_000_000, 65_536, "google"),
    "gemini-2.5-flash": ModelConfig(1_000_000, 65_536, "google"),
    "gemini-3-flash-preview": ModelConfig(1_000_000, 65_536, "google"),
    # ============= DeepSeek =============
    "deepseek-chat": ModelConfig(128_000, 8_192, "deepseek"),
    "deepseek-reasoner": ModelConfig(128_000, 8_192, "deepseek"),
    # ============= Qwen =============
    "qwen-max": ModelConfig(128_000, 8_192, "qwen"),
    "qwen-plus": ModelConfig(128_000, 8_192, "qwen"),
    "qwen-turbo": ModelConfig(128_000, 8_192, "qwen"),
}

# Provider aliases for common shortcuts
PROVIDER_ALIASES: dict[str, str] = {
    "oai": "openai",
    "ant": "anthropic",
    "claude": "anthropic",
    "gpt": "openai",
    "gemini": "google",
}


@dataclass
class ModelRef:
    """Parsed ``provider/model`` reference."""

    provider: Optional[str]
    model: str

    def __str__(self) -> str:
        if not self.provider:
            return self.model
        return f"{self.provider}/{self.model}"


def parse_model_ref(spec: str) -> ModelRef:
    """Parse "provider/model" or a bare model id.

    Examples:
        parse_model_ref("openai/gpt-4o") -> ModelRef("openai", "gpt-4o")
        parse_model_ref("gpt-4o") -> ModelRef(None, "gpt-4o")
    """
    spec = (spec or "").strip()
    if "/" not in spec:
        return ModelRef(provider=None, model=spec)
    provider, model = spec.split("/", 1)
    provider = provider.strip().lower()
    return ModelRef(provider=PROVIDER_ALIASES.get(provider, provider) or None, model=model.strip())


def get_model_config(model_id: str) -> Optional[ModelConfig]:
    """Look up a model by id or provider/model reference."""
    if model_id in KNOWN_MODELS:
        return KNOWN_MODELS[model_id]
    return KNOWN_MODELS.get(parse_model_ref(model_id).model)


def get_model_context_window(model_id: str) -> Optional[int]:
    """Context window for a known model, or None if unknown."""
    config = get_model_config(model_id)
    return config.context_window if config else None
