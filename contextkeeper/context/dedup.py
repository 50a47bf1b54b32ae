"""Reply deduplication.

Detects when the assistant's reply repeats tool output that was already
shown during the same turn, and strips those paragraphs.
"""

import logging
import re
from typing import Optional

from contextkeeper.core.config import DedupConfig
from contextkeeper.telemetry import record_dedup

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[。，！？、：；“”‘’（）【】…—·\-,.!?:;\"'()\[\]/\\_]")
_PARAGRAPH_BREAK = re.compile(r"\n\n+")


def normalize_for_comparison(text: str) -> str:
    """Lowercase and strip whitespace and Latin/CJK punctuation."""
    text = _WHITESPACE.sub("", text.lower())
    return _PUNCTUATION.sub("", text).strip()


def _trigrams(text: str) -> set[str]:
    return {text[i : i + 3] for i in range(len(text) - 2)}


def trigram_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the character trigram sets of two strings."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    grams_a = _trigrams(a)
    grams_b = _trigrams(b)
    if not grams_a and not grams_b:
        return 1.0
    if not grams_a or not grams_b:
        return 0.0

    intersection = len(grams_a & grams_b)
    union = len(grams_a) + len(grams_b) - intersection
    return intersection / union if union else 0.0


class ReplyDeduplicator:
    """Tracks tool outputs for one assistant turn.

    States: "empty" (nothing recorded) and "tracking". Call reset() at
    turn boundaries; one instance per session.
    """

    def __init__(self, config: Optional[DedupConfig] = None):
        self.config = config or DedupConfig()
        self.config.validate()
        self._records: list[tuple[str, str]] = []  # (raw, normalized)

    @property
    def recorded_count(self) -> int:
        """Number of non-empty tool outputs recorded."""
        return len(self._records)

    @property
    def state(self) -> str:
        return "tracking" if self._records else "empty"

    def record_tool_output(self, text: str) -> None:
        """Remember a tool output. Blank text is ignored."""
        trimmed = (text or "").strip()
        if not trimmed:
            return
        self._records.append((trimmed, normalize_for_comparison(trimmed)))

    def is_duplicate(self, text: str) -> bool:
        """Check if text repeats any recorded tool output."""
        if not self._records:
            return False
        normalized = normalize_for_comparison(text or "")
        if not normalized:
            return False

        min_len = self.config.min_substring_length
        for _, recorded in self._records:
            if normalized == recorded:
                return True
            if len(recorded) > min_len and recorded in normalized:
                return True
            if len(normalized) > min_len and normalized in recorded:
                return True
            if trigram_similarity(normalized, recorded) > self.config.similarity_threshold:
                return True
        return False

    def filter_reply(self, text: str) -> str:
        """Drop reply paragraphs that repeat tool output.

        Returns the original text if every paragraph would be removed.
        """
        if not self._records:
            return text

        paragraphs = _PARAGRAPH_BREAK.split(text)
        kept = [p for p in paragraphs if not p.strip() or not self.is_duplicate(p.strip())]

        if not any(p.strip() for p in kept):
            return text

        removed = len(paragraphs) - len(kept)
        if removed:
            logger.debug(f"[Dedup] Removed {removed} paragraph(s) repeating tool output")
            record_dedup(removed)
        return "\n\n".join(kept)

    def reset(self) -> None:
        """Forget all recorded outputs."""
        self._records = []


# Alias kept for callers using the older name.
MessageDeduplicator = ReplyDeduplicator
