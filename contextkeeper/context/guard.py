"""Context window guard.

Resolves the effective context window for a model and flags windows too
small for long conversations.
"""

from dataclasses import dataclass
from typing import Optional

from contextkeeper.models import DEFAULT_CONTEXT_WINDOW, get_model_context_window

WARN_THRESHOLD = 32_000
BLOCK_THRESHOLD = 16_000

SOURCE_OVERRIDE = "thread-override"
SOURCE_KNOWN = "model-known"
SOURCE_DEFAULT = "default"


@dataclass(frozen=True)
class ContextWindowGuardResult:
    """Effective context window and any warning about its size."""

    context_window: int
    source: str  # "thread-override" | "model-known" | "default"
    should_warn: bool
    should_block: bool
    warning_message: Optional[str] = None


def format_window(tokens: int) -> str:
    """Render a window size: "1.0M", "128K", "900"."""
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.1f}M"
    if tokens >= 1_000:
        return f"{tokens / 1_000:.0f}K"
    return str(tokens)


def evaluate_context_window_guard(
    model_id: str,
    context_tokens_override: Optional[int] = None,
) -> ContextWindowGuardResult:
    """Evaluate the context window for a model.

    Priority: explicit override, then the known-model registry, then the
    default window.
    """
    if context_tokens_override and context_tokens_override > 0:
        window = context_tokens_override
        source = SOURCE_OVERRIDE
    else:
        known = get_model_context_window(model_id)
        if known:
            window = known
            source = SOURCE_KNOWN
        else:
            window = DEFAULT_CONTEXT_WINDOW
            source = SOURCE_DEFAULT

    should_block = window < BLOCK_THRESHOLD
    should_warn = not should_block and window < WARN_THRESHOLD

    message = None
    if should_block:
        message = (
            f"Model context window is too small ({format_window(window)}); conversations may fail. "
            "Switch to a model with a larger context."
        )
    elif should_warn:
        message = f"Model context window is small ({format_window(window)}); long conversations will be compacted often."

    return ContextWindowGuardResult(
        context_window=window,
        source=source,
        should_warn=should_warn,
        should_block=should_block,
        warning_message=message,
    )


def get_effective_context_window(model_id: str, context_tokens_override: Optional[int] = None) -> int:
    """Effective context window for budget calculations."""
    return evaluate_context_window_guard(model_id, context_tokens_override).context_window
