"""LLM clients and summarizers for contextkeeper.

Supports:
- OpenAI
- Anthropic
- OpenRouter
- Mock (tests)
"""

from contextkeeper.llm.client import (
    API_KEY_ENV_VARS,
    DEFAULT_MODELS,
    AnthropicClient,
    LLMClient,
    LLMProvider,
    LLMResponse,
    MockLLMClient,
    OpenAIClient,
    OpenRouterClient,
    create_client,
    detect_available_provider,
)
from contextkeeper.llm.summarizer import (
    SUMMARY_PROMPT,
    build_summary_prompt,
    create_llm_summarizer,
)

__all__ = [
    "LLMClient",
    "LLMResponse",
    "LLMProvider",
    "OpenAIClient",
    "AnthropicClient",
    "OpenRouterClient",
    "MockLLMClient",
    "create_client",
    "detect_available_provider",
    "DEFAULT_MODELS",
    "API_KEY_ENV_VARS",
    "SUMMARY_PROMPT",
    "build_summary_prompt",
    "create_llm_summarizer",
]
