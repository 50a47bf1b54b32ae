"""Core type definitions for contextkeeper.

Messages and content blocks are frozen value objects. Transformations
build new messages with ``Message.with_content`` and leave the input
untouched, so unchanged messages can be shared between lists.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Union

from contextkeeper.core.errors import InvalidMessage

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL_RESULT = "tool_result"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Parse a role string, accepting the common tool-result spellings.

        Raises:
            InvalidMessage: If the value is not a known role.
        """
        if isinstance(value, Role):
            return value
        key = str(value or "").strip()
        alias = _ROLE_ALIASES.get(key) or _ROLE_ALIASES.get(key.lower())
        if alias is None:
            raise InvalidMessage(f"unknown role {value!r}")
        return alias


_ROLE_ALIASES = {
    "system": Role.SYSTEM,
    "user": Role.USER,
    "assistant": Role.ASSISTANT,
    "tool_result": Role.TOOL_RESULT,
    "toolResult": Role.TOOL_RESULT,
    "toolresult": Role.TOOL_RESULT,
    "tool-result": Role.TOOL_RESULT,
    "tool": Role.TOOL_RESULT,
}


# ============================================================================
# CONTENT BLOCKS
# ============================================================================


@dataclass(frozen=True)
class TextBlock:
    """Plain text shown to the user."""

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ThinkingBlock:
    """Model reasoning trace."""

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "thinking", "thinking": self.text}


@dataclass(frozen=True)
class ToolCallBlock:
    """A tool invocation requested by the assistant."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result = {"type": "toolCall", "name": self.name, "arguments": dict(self.arguments)}
        if self.id:
            result["id"] = self.id
        return result


@dataclass(frozen=True)
class ToolResultBlock:
    """Output returned by a tool."""

    text: str
    tool_call_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result = {"type": "toolResult", "text": self.text}
        if self.tool_call_id:
            result["tool_call_id"] = self.tool_call_id
        return result


ContentBlock = Union[TextBlock, ThinkingBlock, ToolCallBlock, ToolResultBlock]


def block_from_dict(data: Any) -> Optional[ContentBlock]:
    """Convert one raw content item to a block.

    Returns None for items that carry no usable content.
    """
    if isinstance(data, str):
        return TextBlock(data)
    if not isinstance(data, dict):
        logger.debug(f"[Types] Skipping non-dict content item: {type(data).__name__}")
        return None

    block_type = data.get("type")
    if block_type == "text":
        return TextBlock(str(data.get("text") or ""))
    if block_type == "thinking":
        return ThinkingBlock(str(data.get("thinking") or data.get("text") or ""))
    if block_type in ("toolCall", "tool_call", "tool_use"):
        arguments = data.get("arguments", data.get("input"))
        return ToolCallBlock(
            name=str(data.get("name") or "unknown"),
            arguments=arguments if isinstance(arguments, dict) else {},
            id=data.get("id"),
        )
    if block_type in ("toolResult", "tool_result"):
        text = data.get("text", data.get("content", ""))
        return ToolResultBlock(
            text=text if isinstance(text, str) else str(text),
            tool_call_id=data.get("tool_call_id") or data.get("toolCallId"),
        )

    logger.debug(f"[Types] Skipping unknown content block type: {block_type!r}")
    return None


# ============================================================================
# USAGE
# ============================================================================


@dataclass(frozen=True)
class Usage:
    """Token usage and cost reported for an assistant message."""

    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_write: int = 0
    total_tokens: int = 0
    cost: float = 0.0

    @classmethod
    def zero(cls) -> "Usage":
        """Usage record for messages that cost nothing to produce."""
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "input": self.input,
            "output": self.output,
            "cache_read": self.cache_read,
            "cache_write": self.cache_write,
            "total_tokens": self.total_tokens,
            "cost": self.cost,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Usage":
        cost = data.get("cost", 0.0)
        if isinstance(cost, dict):
            cost = cost.get("total", 0.0)
        return cls(
            input=int(data.get("input", 0) or 0),
            output=int(data.get("output", 0) or 0),
            cache_read=int(data.get("cache_read", data.get("cacheRead", 0)) or 0),
            cache_write=int(data.get("cache_write", data.get("cacheWrite", 0)) or 0),
            total_tokens=int(data.get("total_tokens", data.get("totalTokens", 0)) or 0),
            cost=float(cost or 0.0),
        )


# ============================================================================
# MESSAGE
# ============================================================================


@dataclass(frozen=True)
class Message:
    """A single message in the conversation.

    Provenance fields (api, provider, model) are carried through
    compaction unchanged.
    """

    role: Role
    content: tuple[ContentBlock, ...] = ()
    timestamp: Optional[int] = None  # epoch millis
    api: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    usage: Optional[Usage] = None
    stop_reason: Optional[str] = None

    @classmethod
    def text(cls, role: Union[Role, str], text: str, **kwargs: Any) -> "Message":
        """Build a message holding a single text block."""
        return cls(role=Role.parse(role), content=(TextBlock(text),), **kwargs)

    def with_content(self, content: tuple[ContentBlock, ...]) -> "Message":
        """Return a copy with new content and the same metadata."""
        return replace(self, content=tuple(content))

    def text_content(self, separator: str = " ") -> str:
        """Join the text blocks of this message."""
        return separator.join(b.text for b in self.content if isinstance(b, TextBlock))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict."""
        result: dict[str, Any] = {
            "role": self.role.value,
            "content": [block.to_dict() for block in self.content],
        }
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp
        for key in ("api", "provider", "model"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.usage is not None:
            result["usage"] = self.usage.to_dict()
        if self.stop_reason is not None:
            result["stop_reason"] = self.stop_reason
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Create a message from a chat-API style dict.

        String content becomes a single text block.

        Raises:
            InvalidMessage: If the dict has no valid role.
        """
        if not isinstance(data, dict):
            raise InvalidMessage(f"expected dict, got {type(data).__name__}")
        if "role" not in data:
            raise InvalidMessage("missing role", data)

        role = Role.parse(data["role"])
        raw = data.get("content")
        if raw is None:
            items: list[Any] = []
        elif isinstance(raw, (str, dict)):
            items = [raw]
        else:
            items = list(raw)
        blocks = tuple(b for b in (block_from_dict(item) for item in items) if b is not None)

        usage = data.get("usage")
        timestamp = data.get("timestamp")
        return cls(
            role=role,
            content=blocks,
            timestamp=int(timestamp) if isinstance(timestamp, (int, float)) else None,
            api=data.get("api"),
            provider=data.get("provider"),
            model=data.get("model"),
            usage=Usage.from_dict(usage) if isinstance(usage, dict) else None,
            stop_reason=data.get("stop_reason", data.get("stopReason")),
        )
