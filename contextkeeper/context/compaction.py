"""
CONTEXT COMPACTION
==================

Shrinks conversation history that no longer fits the context window.

Strategies are applied in order, stopping at the first that fits:
1. Truncate stale tool output (lossless-ish)
2. Drop stale reasoning (thinking blocks)
3. Summarize everything between the first message and the recent tail

The most recent ``keep_recent_count`` messages are never modified. Every
step returns a new list; untouched messages are shared by reference.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from contextkeeper.context.tokens import TokenEstimator, estimate_messages_tokens
from contextkeeper.core.config import (
    SUMMARY_LINE_CHARS,
    SUMMARY_MAX_LINES,
    TOOL_OUTPUT_TRUNCATE_CHARS,
    TRANSCRIPT_LINE_CHARS,
    CompactionConfig,
)
from contextkeeper.core.types import (
    Message,
    Role,
    TextBlock,
    ThinkingBlock,
    ToolCallBlock,
    ToolResultBlock,
    Usage,
)
from contextkeeper.telemetry import record_compaction

logger = logging.getLogger(__name__)

# Async capability: transcript in, summary out. May raise or time out.
TextSummarizer = Callable[[str], Awaitable[str]]

TRUNCATION_MARKER = "...[truncated]"
COMPACTION_MARKER = "Context compacted"
UNKNOWN_PROVENANCE = "unknown"

STRATEGY_NONE = "none"
STRATEGY_TRUNCATE = "truncate_tool_output"
STRATEGY_DROP_THINKING = "drop_thinking"
STRATEGY_SUMMARIZE = "summarize"

_ROLE_LABELS = {
    Role.SYSTEM: "System",
    Role.USER: "User",
    Role.ASSISTANT: "Assistant",
    Role.TOOL_RESULT: "Tool",
}


def _now_millis() -> int:
    return int(time.time() * 1000)


# ============================================================================
# COMPACTION RESULT
# ============================================================================


@dataclass
class CompactionResult:
    """Result of a compaction attempt.

    ``messages`` is None when nothing needed to change.
    """

    messages: Optional[list[Message]]
    strategy: str
    original_tokens: int
    final_tokens: int
    messages_summarized: int = 0
    used_summarizer: bool = False

    @property
    def compacted(self) -> bool:
        return self.messages is not None

    def to_dict(self) -> dict:
        return {
            "compacted": self.compacted,
            "strategy": self.strategy,
            "original_tokens": self.original_tokens,
            "final_tokens": self.final_tokens,
            "messages_summarized": self.messages_summarized,
            "used_summarizer": self.used_summarizer,
            "message_count": len(self.messages) if self.messages is not None else None,
        }


# ============================================================================
# LOSSLESS-ISH STRATEGIES
# ============================================================================


def _truncate(text: str) -> str:
    if len(text) > TOOL_OUTPUT_TRUNCATE_CHARS:
        return text[:TOOL_OUTPUT_TRUNCATE_CHARS] + TRUNCATION_MARKER
    return text


def truncate_stale_tool_output(messages: Sequence[Message], keep_recent: int) -> list[Message]:
    """
    Cut long tool output in messages older than the recent tail.

    Text in tool-result messages longer than 200 characters keeps its first
    200 characters plus a truncation marker.
    """
    cutoff = len(messages) - keep_recent
    result = []
    for i, msg in enumerate(messages):
        if i >= cutoff or msg.role != Role.TOOL_RESULT:
            result.append(msg)
            continue

        changed = False
        blocks = []
        for block in msg.content:
            if isinstance(block, TextBlock) and len(block.text) > TOOL_OUTPUT_TRUNCATE_CHARS:
                blocks.append(TextBlock(_truncate(block.text)))
                changed = True
            elif isinstance(block, ToolResultBlock) and len(block.text) > TOOL_OUTPUT_TRUNCATE_CHARS:
                blocks.append(ToolResultBlock(_truncate(block.text), block.tool_call_id))
                changed = True
            else:
                blocks.append(block)

        result.append(msg.with_content(tuple(blocks)) if changed else msg)
    return result


def drop_stale_thinking(messages: Sequence[Message], keep_recent: int) -> list[Message]:
    """Remove thinking blocks from assistant messages older than the recent tail."""
    cutoff = len(messages) - keep_recent
    result = []
    for i, msg in enumerate(messages):
        if i >= cutoff or msg.role != Role.ASSISTANT:
            result.append(msg)
            continue

        kept = tuple(b for b in msg.content if not isinstance(b, ThinkingBlock))
        result.append(msg if len(kept) == len(msg.content) else msg.with_content(kept))
    return result


# ============================================================================
# SUMMARIES
# ============================================================================


def compaction_note(count: int) -> str:
    """Header line placed at the top of every summary message."""
    return f"[{COMPACTION_MARKER}: {count} earlier messages were summarized to save space. Summary follows.]"


def _transcript_text(msg: Message) -> str:
    parts = []
    for block in msg.content:
        if isinstance(block, (TextBlock, ToolResultBlock)):
            parts.append(block.text)
        elif isinstance(block, ToolCallBlock):
            parts.append(f"[called {block.name}]")
        elif isinstance(block, ThinkingBlock):
            continue
    return " ".join(p.strip() for p in parts if p.strip())


def build_transcript(messages: Sequence[Message]) -> str:
    """Plain-text transcript handed to an LLM summarizer.

    One role-labelled line per message, text capped at 500 characters.
    """
    lines = []
    for msg in messages:
        text = _transcript_text(msg)
        if not text:
            continue
        lines.append(f"{msg.role.value.upper()}: {text[:TRANSCRIPT_LINE_CHARS]}")
    return "\n\n".join(lines)


def build_fallback_summary(messages: Sequence[Message]) -> str:
    """Deterministic summary of user and assistant text.

    At most 20 lines of at most 100 characters, then a count of the rest.
    Does not include the compaction note.
    """
    lines = []
    for msg in messages:
        if msg.role not in (Role.USER, Role.ASSISTANT):
            continue
        text = msg.text_content().strip()
        if not text:
            continue
        if len(text) > SUMMARY_LINE_CHARS:
            text = text[:SUMMARY_LINE_CHARS] + "..."
        lines.append(f"{_ROLE_LABELS[msg.role]}: {text}")

    shown = lines[:SUMMARY_MAX_LINES]
    if len(lines) > SUMMARY_MAX_LINES:
        shown.append(f"...({len(lines) - SUMMARY_MAX_LINES} more)")
    return "\n".join(shown)


def build_summary_message(first: Message, text: str, timestamp: int) -> Message:
    """Synthetic assistant message carrying the summary.

    Provenance is copied from the first message of the conversation.
    """
    return Message(
        role=Role.ASSISTANT,
        content=(TextBlock(text),),
        timestamp=timestamp,
        api=first.api or UNKNOWN_PROVENANCE,
        provider=first.provider or UNKNOWN_PROVENANCE,
        model=first.model or UNKNOWN_PROVENANCE,
        usage=Usage.zero(),
        stop_reason="stop",
    )


def _fallback_text(trimmed: Sequence[Message]) -> str:
    body = build_fallback_summary(trimmed)
    note = compaction_note(len(trimmed))
    return f"{note}\n{body}" if body else note


# ============================================================================
# COMPACTION LADDER
# ============================================================================


class CompactionLadder:
    """
    Applies escalating compaction strategies until history fits.

    Holds no conversation data between calls; one instance can serve
    many sessions as long as calls for one conversation are serial.
    """

    def __init__(
        self,
        config: Optional[CompactionConfig] = None,
        summarizer: Optional[TextSummarizer] = None,
        estimator: Optional[TokenEstimator] = None,
        summarizer_timeout: Optional[float] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Args:
            config: Thresholds. Defaults to CompactionConfig().
            summarizer: Optional async summarizer for the lossy step.
            estimator: Optional precise token estimator.
            summarizer_timeout: Seconds to wait for the summarizer before
                using the fallback. None waits as long as the summarizer's
                own contract allows.
            clock: Epoch-millis clock for summary timestamps.
        """
        self.config = config or CompactionConfig()
        self.config.validate()
        self.summarizer = summarizer
        self.estimator = estimator
        self.summarizer_timeout = summarizer_timeout
        self._clock = clock or _now_millis

    def history_limit(self, context_window: int, system_prompt_tokens: int = 0) -> int:
        """Largest history size that needs no compaction."""
        window = max(0, context_window or 0)
        return math.floor(window * self.config.history_threshold_fraction) - system_prompt_tokens

    def _count(self, messages: Sequence[Message]) -> int:
        return estimate_messages_tokens(messages, self.estimator)

    def _too_short(self, messages: Sequence[Message]) -> bool:
        return len(messages) <= self.config.keep_recent_count + 1

    def needs_compaction(
        self,
        messages: Sequence[Message],
        context_window: int,
        system_prompt_tokens: int = 0,
    ) -> bool:
        """Check if compaction would change anything."""
        if self._too_short(messages):
            return False
        return self._count(messages) > self.history_limit(context_window, system_prompt_tokens)

    async def compact(
        self,
        messages: Sequence[Message],
        context_window: int,
        system_prompt_tokens: int = 0,
    ) -> CompactionResult:
        """
        Compact history if it exceeds the threshold.

        Args:
            messages: Conversation history, oldest first.
            context_window: Model context window in tokens.
            system_prompt_tokens: Tokens already taken by the system prompt.

        Returns:
            CompactionResult; ``messages`` is None when nothing changed.
        """
        messages = list(messages)
        keep = self.config.keep_recent_count
        limit = self.history_limit(context_window, system_prompt_tokens)
        original_tokens = self._count(messages)

        if self._too_short(messages) or original_tokens <= limit:
            return CompactionResult(
                messages=None,
                strategy=STRATEGY_NONE,
                original_tokens=original_tokens,
                final_tokens=original_tokens,
            )

        logger.info(
            f"[Compaction] History {original_tokens:,} > {limit:,} tokens "
            f"({len(messages)} messages, keeping {keep} recent)"
        )

        compacted = truncate_stale_tool_output(messages, keep)
        tokens = self._count(compacted)
        if tokens <= limit:
            return self._finish(compacted, STRATEGY_TRUNCATE, original_tokens, tokens)

        compacted = drop_stale_thinking(compacted, keep)
        tokens = self._count(compacted)
        if tokens <= limit:
            return self._finish(compacted, STRATEGY_DROP_THINKING, original_tokens, tokens)

        return await self._summarize(messages[0], compacted, original_tokens)

    async def _summarize(
        self,
        first: Message,
        messages: list[Message],
        original_tokens: int,
    ) -> CompactionResult:
        keep = self.config.keep_recent_count
        tail_start = len(messages) - keep
        trimmed = messages[1:tail_start]
        kept = messages[tail_start:]

        summary = await self._call_summarizer(build_transcript(trimmed)) if trimmed else None
        if summary is not None:
            text = f"{compaction_note(len(trimmed))}\n\n{summary}"
        else:
            text = _fallback_text(trimmed)

        summary_message = build_summary_message(first, text, self._clock())
        result = [first, summary_message, *kept]
        return self._finish(
            result,
            STRATEGY_SUMMARIZE,
            original_tokens,
            self._count(result),
            messages_summarized=len(trimmed),
            used_summarizer=summary is not None,
        )

    async def _call_summarizer(self, transcript: str) -> Optional[str]:
        """Await the summarizer once. Returns None on absence or any failure."""
        if self.summarizer is None:
            return None

        try:
            if self.summarizer_timeout is not None:
                summary = await asyncio.wait_for(self.summarizer(transcript), self.summarizer_timeout)
            else:
                summary = await self.summarizer(transcript)
        except asyncio.TimeoutError:
            logger.warning(
                f"[Compaction] Summarizer timed out after {self.summarizer_timeout}s, using fallback summary"
            )
            return None
        except Exception as e:
            logger.warning(f"[Compaction] Summarizer failed, using fallback summary: {e}")
            return None

        if not isinstance(summary, str) or not summary.strip():
            logger.warning("[Compaction] Summarizer returned no text, using fallback summary")
            return None
        return summary.strip()

    def _finish(
        self,
        messages: list[Message],
        strategy: str,
        original_tokens: int,
        final_tokens: int,
        messages_summarized: int = 0,
        used_summarizer: bool = False,
    ) -> CompactionResult:
        result = CompactionResult(
            messages=messages,
            strategy=strategy,
            original_tokens=original_tokens,
            final_tokens=final_tokens,
            messages_summarized=messages_summarized,
            used_summarizer=used_summarizer,
        )
        logger.info(
            f"[Compaction] Applied {strategy}: {original_tokens:,} -> {final_tokens:,} tokens "
            f"({len(messages)} messages)"
        )
        record_compaction(result)
        return result


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================


async def smart_compact(
    messages: Sequence[Message],
    context_window: int,
    system_prompt_tokens: int = 0,
    config: Optional[CompactionConfig] = None,
    summarizer: Optional[TextSummarizer] = None,
    estimator: Optional[TokenEstimator] = None,
) -> Optional[list[Message]]:
    """Run the full ladder once. Returns the new history or None."""
    ladder = CompactionLadder(config=config, summarizer=summarizer, estimator=estimator)
    result = await ladder.compact(messages, context_window, system_prompt_tokens)
    return result.messages


def compact_messages(
    messages: Sequence[Message],
    context_window: int,
    keep_recent: int = 10,
    threshold: float = 0.8,
    estimator: Optional[TokenEstimator] = None,
    clock: Optional[Callable[[], int]] = None,
) -> Optional[list[Message]]:
    """
    One-shot compaction without the lossless steps.

    Summarizes deterministically when history exceeds ``threshold`` of the
    window. Returns None when no compaction is needed.
    """
    messages = list(messages)
    limit = math.floor(max(0, context_window) * threshold)
    if estimate_messages_tokens(messages, estimator) <= limit:
        return None
    if len(messages) <= keep_recent + 1:
        return None

    tail_start = len(messages) - keep_recent
    trimmed = messages[1:tail_start]
    summary_message = build_summary_message(
        messages[0], _fallback_text(trimmed), (clock or _now_millis)()
    )
    return [messages[0], summary_message, *messages[tail_start:]]
