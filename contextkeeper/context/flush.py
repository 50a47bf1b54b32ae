"""Memory flush scheduling.

Decides when to ask the model to save important facts to persistent
memory, shortly before compaction would discard the messages holding
them. A cooldown keeps the instruction from repeating every turn while
usage hovers above the flush line.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from contextkeeper.context.tokens import TokenEstimator, estimate_messages_tokens
from contextkeeper.core.config import CompactionConfig, FlushConfig
from contextkeeper.core.types import Message
from contextkeeper.telemetry import record_flush

logger = logging.getLogger(__name__)

FLUSH_PROMPT = (
    "[System notice: the conversation is close to the context limit and older "
    "messages will soon be compacted. Before replying, use your memory-write tool "
    "to save any important facts, preferences, or commitments from this "
    "conversation that are not yet stored. Then continue normally.]"
)


@dataclass
class FlushState:
    """Per-session flush bookkeeping. Only FlushScheduler writes it."""

    last_flush_at: int = 0  # epoch millis


def _latest_timestamp(messages: Sequence[Message]) -> Optional[int]:
    stamps = [m.timestamp for m in messages if m.timestamp is not None]
    return max(stamps) if stamps else None


def should_flush(
    messages: Sequence[Message],
    context_window: int,
    last_flush_at: int,
    config: Optional[CompactionConfig] = None,
    estimator: Optional[TokenEstimator] = None,
    flush_config: Optional[FlushConfig] = None,
    now: Optional[int] = None,
) -> bool:
    """Check whether a memory flush should be injected into the next turn.

    Args:
        messages: Conversation history.
        context_window: Model context window in tokens.
        last_flush_at: Epoch millis of the previous flush (0 if never).
        config: Compaction thresholds shared with the ladder.
        estimator: Optional precise token estimator.
        flush_config: Offset and cooldown.
        now: Clock value used when no message carries a timestamp.

    Returns:
        True if history is past the flush line and the cooldown has passed.
    """
    config = config or CompactionConfig()
    flush_config = flush_config or FlushConfig()

    if len(messages) <= config.keep_recent_count + 1:
        return False

    window = max(0, context_window or 0)
    flush_line = math.floor(window * config.history_threshold_fraction) - flush_config.offset_tokens
    if estimate_messages_tokens(messages, estimator) < flush_line:
        return False

    latest = _latest_timestamp(messages)
    if latest is None:
        latest = now if now is not None else int(time.time() * 1000)
    return last_flush_at < latest - flush_config.cooldown_ms


class FlushScheduler:
    """Stateful gate around should_flush for one context window."""

    def __init__(
        self,
        context_window: int,
        config: Optional[CompactionConfig] = None,
        flush_config: Optional[FlushConfig] = None,
        estimator: Optional[TokenEstimator] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.context_window = context_window
        self.config = config or CompactionConfig()
        self.flush_config = flush_config or FlushConfig()
        self.config.validate()
        self.flush_config.validate()
        self.estimator = estimator
        self._clock = clock or (lambda: int(time.time() * 1000))

    def check(self, messages: Sequence[Message], state: FlushState) -> Optional[str]:
        """Return FLUSH_PROMPT and advance the state if a flush is due.

        Returns:
            The instruction to inject, or None.
        """
        now = self._clock()
        if not should_flush(
            messages,
            self.context_window,
            state.last_flush_at,
            config=self.config,
            estimator=self.estimator,
            flush_config=self.flush_config,
            now=now,
        ):
            return None

        state.last_flush_at = now
        tokens = estimate_messages_tokens(messages, self.estimator)
        logger.info(f"[Flush] Requesting memory flush at {tokens:,} history tokens")
        record_flush(tokens)
        return FLUSH_PROMPT
