"""contextkeeper: bounded conversational context for LLM chat clients.

Estimates token usage, accounts for it against a context window, compacts
history when it no longer fits, schedules memory flushes ahead of
compaction, and strips replies that repeat tool output.
"""

from contextkeeper.context import (
    COMPACTION_MARKER,
    FLUSH_PROMPT,
    CompactionLadder,
    CompactionResult,
    FlushScheduler,
    FlushState,
    MessageDeduplicator,
    ReplyDeduplicator,
    TextSummarizer,
    TiktokenCounter,
    TokenBudget,
    TokenEstimator,
    calculate_budget,
    compact_messages,
    estimate_message_tokens,
    estimate_messages_tokens,
    estimate_tokens,
    evaluate_context_window_guard,
    format_budget,
    format_token_count,
    should_flush,
    smart_compact,
    token_usage_percent,
)
from contextkeeper.core import (
    CompactionConfig,
    ContextKeeperConfig,
    ContextKeeperError,
    DedupConfig,
    FlushConfig,
    Message,
    Role,
    TextBlock,
    ThinkingBlock,
    ToolCallBlock,
    ToolResultBlock,
    Usage,
)

__version__ = "0.1.0"

__all__ = [
    # Types
    "Message",
    "Role",
    "TextBlock",
    "ThinkingBlock",
    "ToolCallBlock",
    "ToolResultBlock",
    "Usage",
    # Config
    "ContextKeeperConfig",
    "CompactionConfig",
    "FlushConfig",
    "DedupConfig",
    "ContextKeeperError",
    # Tokens
    "estimate_tokens",
    "estimate_message_tokens",
    "estimate_messages_tokens",
    "TokenEstimator",
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
    # Flush
    "FlushScheduler",
    "FlushState",
    "should_flush",
    "FLUSH_PROMPT",
    # Dedup
    "ReplyDeduplicator",
    "MessageDeduplicator",
    # Guard
    "evaluate_context_window_guard",
]
