"""Token budget accounting against a fixed context window.

Produces a breakdown of where the window goes (system prompt, injected
lorebook text, history, reserved output) and what is left.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from contextkeeper.context.tokens import TokenEstimator, estimate_messages_tokens
from contextkeeper.core.config import CompactionConfig
from contextkeeper.core.types import Message


@dataclass(frozen=True)
class TokenBudget:
    """Token usage breakdown for one context window.

    All fields are non-negative estimated token counts.
    """

    context_window: int
    system_prompt: int
    lorebook: int
    history: int
    output_reserve: int
    available: int

    @property
    def used(self) -> int:
        """Tokens consumed by everything except the free space."""
        return self.system_prompt + self.lorebook + self.history + self.output_reserve

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "context_window": self.context_window,
            "system_prompt": self.system_prompt,
            "lorebook": self.lorebook,
            "history": self.history,
            "output_reserve": self.output_reserve,
            "available": self.available,
        }


def calculate_budget(
    context_window: int,
    system_prompt_text: str,
    auxiliary_text: str,
    messages: Sequence[Message],
    config: Optional[CompactionConfig] = None,
    estimator: Optional[TokenEstimator] = None,
) -> TokenBudget:
    """Calculate the current token budget breakdown.

    Args:
        context_window: Model context window in tokens.
        system_prompt_text: Rendered system prompt.
        auxiliary_text: Other injected text (lorebook entries, memory).
        messages: Conversation history.
        config: Budget fractions. Defaults to CompactionConfig().
        estimator: Optional precise estimator.

    Returns:
        TokenBudget. A non-positive window yields zero reserve and zero
        available tokens.
    """
    config = config or CompactionConfig()
    window = max(0, int(context_window or 0))
    est = estimator or TokenEstimator()

    system_prompt = est.estimate(system_prompt_text)
    lorebook = est.estimate(auxiliary_text)
    history = estimate_messages_tokens(messages, estimator)
    output_reserve = max(0, math.floor(window * config.output_reserve_fraction))

    used = system_prompt + lorebook + history + output_reserve
    return TokenBudget(
        context_window=window,
        system_prompt=system_prompt,
        lorebook=lorebook,
        history=history,
        output_reserve=output_reserve,
        available=max(0, window - used),
    )


# ============================================================================
# DISPLAY HELPERS
# ============================================================================


def format_token_count(tokens: int) -> str:
    """Render a token count: "500", "1.5K", "128.0K"."""
    if tokens >= 1000:
        return f"{tokens / 1000:.1f}K"
    return str(tokens)


def format_budget(budget: TokenBudget) -> str:
    """Format the non-zero parts of a budget, e.g. "system: 1.2K · history: 800"."""
    parts = [
        ("system", budget.system_prompt),
        ("lorebook", budget.lorebook),
        ("history", budget.history),
        ("reserve", budget.output_reserve),
        ("available", budget.available),
    ]
    return " · ".join(f"{label}: {format_token_count(value)}" for label, value in parts if value)


def token_usage_percent(tokens: int, context_window: int) -> int:
    """Usage as a whole percentage of the window, clamped to 0..100."""
    if context_window <= 0:
        return 0
    percent = math.floor(tokens / context_window * 100 + 0.5)
    return max(0, min(100, percent))
