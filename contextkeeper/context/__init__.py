"""Context management for LLM chat sessions.

This module provides:
- Token estimation (heuristic, with optional tiktoken precision)
- Budget accounting against a context window
- Layered compaction, from truncating old tool output to summarization
- Memory flush scheduling ahead of compaction
- Deduplication of replies that repeat tool output
- Context window guard for small-window models
"""

# Tokens
from contextkeeper.context.tokens import (
    TiktokenCounter,
    TokenCounter,
    TokenEstimator,
    estimate_message_tokens,
    estimate_messages_tokens,
    estimate_tokens,
)

# Budget
from contextkeeper.context.budget import (
    TokenBudget,
    calculate_budget,
    format_budget,
    format_token_count,
    token_usage_percent,
)

# Compaction
from contextkeeper.context.compaction import (
    COMPACTION_MARKER,
    TRUNCATION_MARKER,
    CompactionLadder,
    CompactionResult,
    TextSummarizer,
    compact_messages,
    smart_compact,
)

# Flush
from contextkeeper.context.flush import FLUSH_PROMPT, FlushScheduler, FlushState, should_flush

# Dedup
from contextkeeper.context.dedup import (
    MessageDeduplicator,
    ReplyDeduplicator,
    normalize_for_comparison,
    trigram_similarity,
)

# Guard
from contextkeeper.context.guard import (
    ContextWindowGuardResult,
    evaluate_context_window_guard,
    get_effective_context_window,
)

__all__ = [
    # Tokens
    "estimate_tokens",
    "estimate_message_tokens",
    "estimate_messages_tokens",
    "TokenEstimator",
    "TokenCounter",
    "TiktokenCounter",
    # Budget
    "TokenBudget",
    "calculate_budget",
    "format_budget",
    "format_token_count",
    "token_usage_percent",
    # Compaction
    "CompactionLadder",
    "CompactionResult",
    "TextSummarizer",
    "smart_compact",
    "compact_messages",
    "COMPACTION_MARKER",
    "TRUNCATION_MARKER",
    # Flush
    "FlushScheduler",
    "FlushState",
    "should_flush",
    "FLUSH_PROMPT",
    # Dedup
    "ReplyDeduplicator",
    "MessageDeduplicator",
    "normalize_for_comparison",
    "trigram_similarity",
    # Guard
    "ContextWindowGuardResult",
    "evaluate_context_window_guard",
    "get_effective_context_window",
]
