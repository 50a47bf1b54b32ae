"""LLM client abstraction used by summarizers.

Supported providers:
- OpenAI (GPT-4o, GPT-4o-mini, etc.)
- Anthropic (Claude)
- OpenRouter (OpenAI-compatible access to many models)
- Mock (tests)
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import anthropic
import openai

from contextkeeper.core.errors import UnknownProvider


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"
    MOCK = "mock"


# Default summarization models for each provider
DEFAULT_MODELS = {
    LLMProvider.OPENAI: "gpt-4o-mini",
    LLMProvider.ANTHROPIC: "claude-3-5-haiku-20241022",
    LLMProvider.OPENROUTER: "openai/gpt-4o-mini",
    LLMProvider.MOCK: "mock-model",
}

# Environment variable names for API keys
API_KEY_ENV_VARS = {
    LLMProvider.OPENAI: "OPENAI_API_KEY",
    LLMProvider.ANTHROPIC: "ANTHROPIC_API_KEY",
    LLMProvider.OPENROUTER: "OPENROUTER_API_KEY",
}

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


@dataclass
class LLMResponse:
    """Response from an LLM call."""

    content: str
    model: str
    usage: dict[str, int]
    finish_reason: str
    provider: str = "unknown"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "content": self.content,
            "model": self.model,
            "usage": self.usage,
            "finish_reason": self.finish_reason,
            "provider": self.provider,
        }


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    provider: LLMProvider

    @abstractmethod
    def complete(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        """Generate a completion.

        Args:
            messages: List of message dicts with role and content.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens to generate.

        Returns:
            LLMResponse with the completion.
        """
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the model name."""
        pass


def _require_key(provider: LLMProvider, api_key: Optional[str]) -> str:
    env_var = API_KEY_ENV_VARS[provider]
    key = api_key or os.environ.get(env_var)
    if not key:
        raise ValueError(f"{provider.value} API key required. Set {env_var} env var or pass api_key.")
    return key


class OpenAIClient(LLMClient):
    """OpenAI chat completions client.

    Also serves OpenAI-compatible endpoints through ``base_url``.
    """

    provider = LLMProvider.OPENAI

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.model = model
        self._api_key = _require_key(self.provider, api_key)
        self._base_url = base_url
        self._client = None

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            self._client = openai.OpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._client

    def complete(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        response = self._get_client().chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        usage = {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }

        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model or self.model,
            usage=usage,
            finish_reason=response.choices[0].finish_reason or "stop",
            provider=self.provider.value,
        )

    def get_model_name(self) -> str:
        return self.model


class OpenRouterClient(OpenAIClient):
    """OpenRouter client (OpenAI-compatible API)."""

    provider = LLMProvider.OPENROUTER

    def __init__(self, model: str = "openai/gpt-4o-mini", api_key: Optional[str] = None):
        super().__init__(model=model, api_key=api_key, base_url=OPENROUTER_BASE_URL)


class AnthropicClient(LLMClient):
    """Anthropic Messages API client."""

    provider = LLMProvider.ANTHROPIC

    def __init__(
        self,
        model: str = "claude-3-5-haiku-20241022",
        api_key: Optional[str] = None,
    ):
        self.model = model
        self._api_key = _require_key(self.provider, api_key)
        self._client = None

    def _get_client(self) -> anthropic.Anthropic:
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self._api_key)
        return self._client

    def complete(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        # System messages go in the dedicated parameter
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        chat_messages = [m for m in messages if m["role"] != "system"]

        kwargs = {
            "model": self.model,
            "messages": chat_messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        response = self._get_client().messages.create(**kwargs)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return LLMResponse(
            content=text,
            model=response.model,
            usage={
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            },
            finish_reason=response.stop_reason or "stop",
            provider=self.provider.value,
        )

    def get_model_name(self) -> str:
        return self.model


class MockLLMClient(LLMClient):
    """Mock LLM client for testing.

    Cycles through canned responses and records every prompt it receives.
    """

    provider = LLMProvider.MOCK

    def __init__(self, responses: Optional[list[str]] = None):
        self.responses = responses or ["- Mock summary of the conversation."]
        self.calls: list[list[dict[str, str]]] = []

    def complete(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        response_idx = len(self.calls) % len(self.responses)
        self.calls.append(messages)

        return LLMResponse(
            content=self.responses[response_idx],
            model="mock-model",
            usage={"prompt_tokens": 10, "completion_tokens": 10, "total_tokens": 20},
            finish_reason="stop",
            provider="mock",
        )

    def get_model_name(self) -> str:
        return "mock-model"


# Provider registry
PROVIDERS = {
    LLMProvider.OPENAI: OpenAIClient,
    LLMProvider.ANTHROPIC: AnthropicClient,
    LLMProvider.OPENROUTER: OpenRouterClient,
    LLMProvider.MOCK: MockLLMClient,
}


def create_client(
    provider: str = "openai",
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    **kwargs,
) -> LLMClient:
    """Create an LLM client for the specified provider.

    Args:
        provider: Provider name (openai, anthropic, openrouter, mock).
        model: Model name. Uses the provider default if not specified.
        api_key: API key. Uses the provider's env var if not specified.
        **kwargs: ``responses`` for the mock provider.

    Returns:
        LLMClient instance.

    Raises:
        UnknownProvider: If provider is unknown.
    """
    try:
        provider_enum = LLMProvider(provider.lower())
    except ValueError:
        raise UnknownProvider(provider, [p.value for p in LLMProvider])

    if provider_enum == LLMProvider.MOCK:
        return MockLLMClient(responses=kwargs.get("responses"))

    client_class = PROVIDERS[provider_enum]
    return client_class(model=model or DEFAULT_MODELS[provider_enum], api_key=api_key)


def detect_available_provider() -> Optional[str]:
    """First provider with an API key configured, or None."""
    for provider in (LLMProvider.OPENAI, LLMProvider.ANTHROPIC, LLMProvider.OPENROUTER):
        if os.environ.get(API_KEY_ENV_VARS[provider]):
            return provider.value
    return None
