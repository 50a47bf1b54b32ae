"""Core types, configuration, and errors for contextkeeper."""

from contextkeeper.core.config import (
    CompactionConfig,
    ContextKeeperConfig,
    DedupConfig,
    FlushConfig,
)
from contextkeeper.core.errors import (
    ConfigError,
    ContextKeeperError,
    InvalidMessage,
    SummarizerFailed,
    TokenizerUnavailable,
    UnknownProvider,
)
from contextkeeper.core.types import (
    ContentBlock,
    Message,
    Role,
    TextBlock,
    ThinkingBlock,
    ToolCallBlock,
    ToolResultBlock,
    Usage,
)

__all__ = [
    # Types
    "Role",
    "ContentBlock",
    "TextBlock",
    "ThinkingBlock",
    "ToolCallBlock",
    "ToolResultBlock",
    "Usage",
    "Message",
    # Config
    "ContextKeeperConfig",
    "CompactionConfig",
    "FlushConfig",
    "DedupConfig",
    # Errors
    "ContextKeeperError",
    "ConfigError",
    "InvalidMessage",
    "SummarizerFailed",
    "TokenizerUnavailable",
    "UnknownProvider",
]
