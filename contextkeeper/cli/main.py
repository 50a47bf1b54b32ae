"""CLI entrypoint for contextkeeper.

Commands:
- budget: Show the token budget of a saved conversation
- compact: Run the compaction ladder over a saved conversation
- models: List known model context windows
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from contextkeeper.context import (
    CompactionLadder,
    TiktokenCounter,
    TokenEstimator,
    calculate_budget,
    evaluate_context_window_guard,
    format_budget,
    format_token_count,
    token_usage_percent,
)
from contextkeeper.core.config import CompactionConfig, ContextKeeperConfig
from contextkeeper.core.errors import ContextKeeperError
from contextkeeper.core.types import Message
from contextkeeper.llm.summarizer import create_llm_summarizer
from contextkeeper.models import KNOWN_MODELS
from contextkeeper.telemetry import TelemetryManager

# Load .env file from current directory
load_dotenv()

console = Console()
err_console = Console(stderr=True)


def load_messages(path: str) -> list[Message]:
    """Load a conversation saved as a JSON list (or {"messages": [...]})."""
    with open(path, encoding="utf-8") as f:
        data: Any = json.load(f)
    if isinstance(data, dict):
        data = data.get("messages", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of messages")
    return [Message.from_dict(item) for item in data]


def _resolve_window(args: argparse.Namespace) -> int:
    guard = evaluate_context_window_guard(args.model or "", args.context_window)
    if guard.warning_message:
        err_console.print(f"[yellow]{escape(guard.warning_message)}[/yellow]")
    return guard.context_window


def _estimator(args: argparse.Namespace) -> Optional[TokenEstimator]:
    if getattr(args, "precise", False):
        return TokenEstimator(TiktokenCounter())
    return None


def budget_command(args: argparse.Namespace) -> int:
    """Print the token budget for a conversation file.

    Args:
        args: Command line arguments.

    Returns:
        Exit code.
    """
    messages = load_messages(args.file)
    window = _resolve_window(args)
    budget = calculate_budget(
        window,
        args.system or "",
        args.lorebook or "",
        messages,
        CompactionConfig(),
        _estimator(args),
    )
    percent = token_usage_percent(budget.used, budget.context_window)

    if args.format == "json":
        print(json.dumps({**budget.to_dict(), "usage_percent": percent}, indent=2))
        return 0

    table = Table(title=f"Token budget ({len(messages)} messages)")
    table.add_column("Component")
    table.add_column("Tokens", justify="right")
    for label, value in budget.to_dict().items():
        table.add_row(label.replace("_", " "), format_token_count(value))
    console.print(table)
    console.print(f"{format_budget(budget)}  ({percent}% used)")
    return 0


def compact_command(args: argparse.Namespace) -> int:
    """Compact a conversation file.

    Uses the deterministic summary unless ``--summarize`` asks for an LLM
    summarizer, which still falls back to it on failure.

    Args:
        args: Command line arguments.

    Returns:
        Exit code.
    """
    config = ContextKeeperConfig(
        compaction=CompactionConfig(keep_recent_count=args.keep_recent),
        summarizer_provider=args.provider,
        summarizer_model=args.summarizer_model,
        summarizer_timeout=args.summarizer_timeout,
    )
    config.validate()

    summarizer = None
    if args.summarize:
        summarizer = create_llm_summarizer(
            provider=config.summarizer_provider,
            model=config.summarizer_model,
            timeout=config.summarizer_timeout,
        )

    messages = load_messages(args.file)
    window = _resolve_window(args)
    ladder = CompactionLadder(
        config=config.compaction,
        summarizer=summarizer,
        estimator=_estimator(args),
        summarizer_timeout=config.summarizer_timeout,
    )
    result = asyncio.run(ladder.compact(messages, window, args.system_tokens))

    if not result.compacted:
        err_console.print(
            f"No compaction needed ({format_token_count(result.original_tokens)} tokens, "
            f"{len(messages)} messages)"
        )
        return 0

    payload = [m.to_dict() for m in result.messages]
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        err_console.print(f"Wrote {len(payload)} messages to {args.output}")
    else:
        print(json.dumps(payload, ensure_ascii=False, indent=2))

    err_console.print(
        f"Strategy: {result.strategy} · "
        f"{format_token_count(result.original_tokens)} -> {format_token_count(result.final_tokens)} tokens",
        highlight=False,
    )
    return 0


def models_command(args: argparse.Namespace) -> int:
    """List known model context windows.

    Args:
        args: Command line arguments.

    Returns:
        Exit code.
    """
    if args.format == "json":
        output = {
            name: {
                "provider": cfg.provider,
                "context_window": cfg.context_window,
                "output_token_limit": cfg.output_token_limit,
            }
            for name, cfg in KNOWN_MODELS.items()
        }
        print(json.dumps(output, indent=2))
        return 0

    table = Table(title="Known models")
    table.add_column("Model")
    table.add_column("Provider")
    table.add_column("Context", justify="right")
    table.add_column("Max output", justify="right")
    for name, cfg in sorted(KNOWN_MODELS.items(), key=lambda item: (item[1].provider, item[0])):
        table.add_row(
            name,
            cfg.provider,
            format_token_count(cfg.context_window),
            format_token_count(cfg.output_token_limit),
        )
    console.print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="contextkeeper",
        description="Token budgeting and context compaction for LLM conversations",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_window_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("file", help="Conversation JSON file")
        sub.add_argument("--context-window", type=int, default=None, help="Context window in tokens")
        sub.add_argument("--model", default=None, help="Model id used to look up the context window")
        sub.add_argument("--precise", action="store_true", help="Count tokens with tiktoken")

    budget = subparsers.add_parser("budget", help="Show the token budget of a conversation")
    add_window_args(budget)
    budget.add_argument("--system", default="", help="System prompt text")
    budget.add_argument("--lorebook", default="", help="Injected lorebook/memory text")
    budget.add_argument("--format", choices=["table", "json"], default="table")
    budget.set_defaults(func=budget_command)

    compact = subparsers.add_parser("compact", help="Compact a conversation")
    add_window_args(compact)
    compact.add_argument("--keep-recent", type=int, default=10, help="Recent messages to keep verbatim")
    compact.add_argument("--system-tokens", type=int, default=0, help="Tokens used by the system prompt")
    compact.add_argument("--output", "-o", default=None, help="Write the result to this file")
    compact.add_argument("--summarize", action="store_true", help="Summarize with an LLM")
    compact.add_argument(
        "--provider",
        default="openai",
        help="Summarizer provider (openai, anthropic, openrouter, mock)",
    )
    compact.add_argument("--summarizer-model", default=None, help="Summarizer model (provider default)")
    compact.add_argument(
        "--summarizer-timeout", type=float, default=30.0, help="Seconds before the summarizer gives up"
    )
    compact.set_defaults(func=compact_command)

    models = subparsers.add_parser("models", help="List known model context windows")
    models.add_argument("--format", choices=["table", "json"], default="table")
    models.set_defaults(func=models_command)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        # Exports spans only when OTEL_ENABLED is set
        with TelemetryManager():
            return args.func(args)
    except (OSError, ValueError, ContextKeeperError) as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
