"""
TOKEN ESTIMATION
================

Converts text and messages into approximate token counts.

The default heuristic charges 1.5 tokens per CJK character and 0.25 per
other character, rounded up. A precise counter (tiktoken) can be plugged
in through ``TokenEstimator``; if it cannot load or raises, the heuristic
is used and the caller never sees the failure.
"""

import json
import logging
import math
import re
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

import tiktoken

from contextkeeper.core.errors import TokenizerUnavailable
from contextkeeper.core.types import (
    Message,
    TextBlock,
    ThinkingBlock,
    ToolCallBlock,
    ToolResultBlock,
)

logger = logging.getLogger(__name__)

# Han ideographs, extension A, CJK punctuation, fullwidth forms
CJK_PATTERN = re.compile("[\u4e00-\u9fff\u3400-\u4dbf\u3000-\u303f\uff00-\uffef]")

CJK_TOKENS_PER_CHAR = 1.5
OTHER_TOKENS_PER_CHAR = 0.25
MESSAGE_OVERHEAD_TOKENS = 4  # Role markers and formatting


def estimate_tokens(text: Any) -> int:
    """
    Heuristic token count for text.

    Args:
        text: Text to count. Non-string values are converted with str();
            None counts as empty.

    Returns:
        Estimated token count, 0 for empty or whitespace-only text
    """
    if text is None:
        return 0
    if not isinstance(text, str):
        text = str(text)
    if not text.strip():
        return 0
    cjk_count = len(CJK_PATTERN.findall(text))
    other_count = len(text) - cjk_count
    return math.ceil(cjk_count * CJK_TOKENS_PER_CHAR + other_count * OTHER_TOKENS_PER_CHAR)


# ============================================================================
# PRECISE COUNTERS
# ============================================================================


class TokenCounter(ABC):
    """Abstract precise tokenizer."""

    @abstractmethod
    def count(self, text: str) -> int:
        """Count tokens in text. May raise."""
        pass

    @property
    def available(self) -> bool:
        """Whether the counter can currently be used."""
        return True


class TiktokenCounter(TokenCounter):
    """Token counter backed by tiktoken.

    The encoding is loaded lazily on first use. A failed load marks the
    counter unavailable for the rest of its life.
    """

    def __init__(self, encoding_name: Optional[str] = None, model: Optional[str] = "gpt-4o"):
        """
        Args:
            encoding_name: Explicit encoding (e.g. "cl100k_base"). Takes
                precedence over model.
            model: Model name to look up the encoding for.
        """
        self.encoding_name = encoding_name
        self.model = model
        self._encoding = None
        self._load_failed = False

    @property
    def label(self) -> str:
        return self.encoding_name or self.model or "unknown"

    def _get_encoding(self):
        if self._encoding is not None:
            return self._encoding
        if self._load_failed:
            raise TokenizerUnavailable(self.label)

        try:
            if self.encoding_name:
                self._encoding = tiktoken.get_encoding(self.encoding_name)
            else:
                self._encoding = tiktoken.encoding_for_model(self.model or "gpt-4o")
        except Exception as e:
            self._load_failed = True
            logger.debug(f"[Tokens] Could not load tiktoken encoding {self.label}: {e}")
            raise TokenizerUnavailable(self.label, cause=str(e)) from e
        return self._encoding

    @property
    def available(self) -> bool:
        if self._encoding is not None:
            return True
        if self._load_failed:
            return False
        try:
            self._get_encoding()
        except TokenizerUnavailable:
            return False
        return True

    def count(self, text: str) -> int:
        return len(self._get_encoding().encode(text, disallowed_special=()))


class TokenEstimator:
    """Estimates token counts, preferring a precise counter when one works."""

    def __init__(self, counter: Optional[TokenCounter] = None):
        self.counter = counter

    @property
    def is_precise(self) -> bool:
        """True when counts come from the precise counter."""
        if self.counter is None:
            return False
        try:
            return self.counter.available
        except Exception:
            return False

    def estimate(self, text: Any) -> int:
        """Count tokens in text. Never raises."""
        if text is None:
            return 0
        if not isinstance(text, str):
            text = str(text)
        if not text.strip():
            return 0
        if self.counter is not None:
            try:
                return max(0, int(self.counter.count(text)))
            except Exception as e:
                logger.debug(f"[Tokens] Precise count failed, using heuristic: {e}")
        return estimate_tokens(text)


def _estimate(text: str, estimator: Optional[TokenEstimator]) -> int:
    if estimator is None:
        return estimate_tokens(text)
    return estimator.estimate(text)


def serialize_arguments(arguments: dict) -> str:
    """Compact JSON form of tool-call arguments, as counted for tokens.

    Arguments that JSON cannot encode (non-string keys, circular values) are
    counted by their ``str()`` form instead.
    """
    try:
        return json.dumps(arguments, ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return str(arguments)


def estimate_message_tokens(message: Message, estimator: Optional[TokenEstimator] = None) -> int:
    """
    Count tokens in a single message.

    Text, thinking and tool-result blocks count their text; tool calls
    count their serialized arguments. A fixed per-message overhead is added.
    """
    total = MESSAGE_OVERHEAD_TOKENS
    for block in message.content:
        if isinstance(block, (TextBlock, ThinkingBlock, ToolResultBlock)):
            total += _estimate(block.text, estimator)
        elif isinstance(block, ToolCallBlock):
            total += _estimate(serialize_arguments(block.arguments), estimator)
        else:
            logger.debug(f"[Tokens] Not counting block of type {type(block).__name__}")
    return total


def estimate_messages_tokens(
    messages: Iterable[Message],
    estimator: Optional[TokenEstimator] = None,
) -> int:
    """Total token count of a message list. 0 for an empty list."""
    return sum(estimate_message_tokens(msg, estimator) for msg in messages)
