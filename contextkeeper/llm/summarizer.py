"""LLM-backed summarizers for lossy compaction.

Builds ``TextSummarizer`` callables: async functions that take a plain-text
transcript and return a summary. They raise ``SummarizerFailed`` on any
problem; the compaction ladder catches it and uses its fallback summary.
"""

import asyncio
import logging
from typing import Optional

from contextkeeper.context.compaction import TextSummarizer
from contextkeeper.core.errors import SummarizerFailed
from contextkeeper.llm.client import LLMClient, create_client

logger = logging.getLogger(__name__)


SUMMARY_SYSTEM_PROMPT = "You are a precise summarizer. Extract key facts only."

SUMMARY_PROMPT = """You are summarizing the earlier part of a conversation between a user and an AI character.
The character needs to remember key facts to stay consistent.

Conversation:
{transcript}

Create a MEMORY SUMMARY. Include:
- Facts the user shared about themselves (name, preferences, plans)
- Decisions, promises, and open questions
- Important results from tools
- The emotional tone and state of the relationship

Format as concise bullets. Skip greetings and filler. Keep it under 300 words."""


def build_summary_prompt(transcript: str) -> list[dict[str, str]]:
    """Chat messages asking an LLM to summarize a transcript."""
    return [
        {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
        {"role": "user", "content": SUMMARY_PROMPT.format(transcript=transcript)},
    ]


def create_llm_summarizer(
    provider: str = "openai",
    model: Optional[str] = None,
    timeout: float = 30.0,
    max_tokens: int = 800,
    client: Optional[LLMClient] = None,
) -> TextSummarizer:
    """Create a summarizer backed by an LLM client.

    The blocking client call runs in a worker thread and is bounded by
    ``timeout`` seconds.

    Args:
        provider: LLM provider (openai, anthropic, openrouter, mock).
        model: Model name. Provider default if not specified.
        timeout: Seconds before the call is abandoned.
        max_tokens: Maximum summary length.
        client: Pre-built client; provider and model are ignored if given.

    Returns:
        Async function that takes transcript text and returns a summary.
    """
    llm = client or create_client(provider=provider, model=model)

    async def summarize(transcript: str) -> str:
        messages = build_summary_prompt(transcript)
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(llm.complete, messages, 0.0, max_tokens),
                timeout,
            )
        except asyncio.TimeoutError:
            raise SummarizerFailed(f"timed out after {timeout}s", provider=llm.provider.value)
        except Exception as e:
            raise SummarizerFailed(str(e), provider=llm.provider.value) from e

        content = (response.content or "").strip()
        if not content:
            raise SummarizerFailed("empty response", provider=llm.provider.value)

        logger.debug(f"[Summarizer] Generated summary: {len(content)} chars via {llm.get_model_name()}")
        return content

    return summarize
