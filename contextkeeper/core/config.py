"""Configuration dataclasses for contextkeeper."""

from dataclasses import dataclass, field
from typing import Optional

from contextkeeper.core.errors import ConfigError

# Fixed constants. Not configurable per call.
FLUSH_OFFSET_TOKENS = 4000  # Flush line sits this far below the compaction line
TOOL_OUTPUT_TRUNCATE_CHARS = 200
TRANSCRIPT_LINE_CHARS = 500  # Per-message cap in the summarizer transcript
SUMMARY_LINE_CHARS = 100  # Per-line cap in the fallback summary
SUMMARY_MAX_LINES = 20
DEDUP_MIN_SUBSTRING_LENGTH = 8

# Empirically tuned, not derived. Overridable through FlushConfig / DedupConfig.
FLUSH_COOLDOWN_MS = 60_000
DEDUP_SIMILARITY_THRESHOLD = 0.85


def _check_fraction(name: str, value: float) -> None:
    if not 0.0 < value < 1.0:
        raise ConfigError(name, value, "must be strictly between 0 and 1")


@dataclass
class CompactionConfig:
    """Budget and compaction thresholds.

    Supplied by the caller per invocation; has no persisted identity.
    """

    output_reserve_fraction: float = 0.15  # Share of the window reserved for output
    history_threshold_fraction: float = 0.80  # Compact once history passes this share
    keep_recent_count: int = 10  # Most recent messages never touched

    def validate(self) -> None:
        """Validate configuration."""
        _check_fraction("output_reserve_fraction", self.output_reserve_fraction)
        _check_fraction("history_threshold_fraction", self.history_threshold_fraction)
        if self.keep_recent_count < 0:
            raise ConfigError("keep_recent_count", self.keep_recent_count, "must be non-negative")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "output_reserve_fraction": self.output_reserve_fraction,
            "history_threshold_fraction": self.history_threshold_fraction,
            "keep_recent_count": self.keep_recent_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CompactionConfig":
        """Create from dictionary, keeping defaults for missing keys."""
        defaults = cls()
        return cls(
            output_reserve_fraction=data.get("output_reserve_fraction", defaults.output_reserve_fraction),
            history_threshold_fraction=data.get("history_threshold_fraction", defaults.history_threshold_fraction),
            keep_recent_count=data.get("keep_recent_count", defaults.keep_recent_count),
        )


@dataclass
class FlushConfig:
    """Memory flush scheduling."""

    offset_tokens: int = FLUSH_OFFSET_TOKENS
    cooldown_ms: int = FLUSH_COOLDOWN_MS

    def validate(self) -> None:
        if self.offset_tokens < 0:
            raise ConfigError("offset_tokens", self.offset_tokens, "must be non-negative")
        if self.cooldown_ms < 0:
            raise ConfigError("cooldown_ms", self.cooldown_ms, "must be non-negative")


@dataclass
class DedupConfig:
    """Reply deduplication thresholds."""

    similarity_threshold: float = DEDUP_SIMILARITY_THRESHOLD
    min_substring_length: int = DEDUP_MIN_SUBSTRING_LENGTH

    def validate(self) -> None:
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ConfigError("similarity_threshold", self.similarity_threshold, "must be within [0, 1]")
        if self.min_substring_length < 0:
            raise ConfigError("min_substring_length", self.min_substring_length, "must be non-negative")


@dataclass
class ContextKeeperConfig:
    """Top-level configuration bundling every component."""

    compaction: CompactionConfig = field(default_factory=CompactionConfig)
    flush: FlushConfig = field(default_factory=FlushConfig)
    dedup: DedupConfig = field(default_factory=DedupConfig)

    # Summarizer options
    summarizer_provider: str = "openai"
    summarizer_model: Optional[str] = None  # Provider default when unset
    summarizer_timeout: float = 30.0

    def validate(self) -> None:
        """Validate all configuration."""
        self.compaction.validate()
        self.flush.validate()
        self.dedup.validate()
        if self.summarizer_timeout <= 0:
            raise ConfigError("summarizer_timeout", self.summarizer_timeout, "must be positive")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "compaction": self.compaction.to_dict(),
            "flush": {
                "offset_tokens": self.flush.offset_tokens,
                "cooldown_ms": self.flush.cooldown_ms,
            },
            "dedup": {
                "similarity_threshold": self.dedup.similarity_threshold,
                "min_substring_length": self.dedup.min_substring_length,
            },
            "summarizer_provider": self.summarizer_provider,
            "summarizer_model": self.summarizer_model,
            "summarizer_timeout": self.summarizer_timeout,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ContextKeeperConfig":
        """Create from dictionary."""
        config = cls(
            summarizer_provider=data.get("summarizer_provider", "openai"),
            summarizer_model=data.get("summarizer_model"),
            summarizer_timeout=data.get("summarizer_timeout", 30.0),
        )

        if "compaction" in data:
            config.compaction = CompactionConfig.from_dict(data["compaction"])

        if "flush" in data:
            flush_data = data["flush"]
            config.flush = FlushConfig(
                offset_tokens=flush_data.get("offset_tokens", config.flush.offset_tokens),
                cooldown_ms=flush_data.get("cooldown_ms", config.flush.cooldown_ms),
            )

        if "dedup" in data:
            dedup_data = data["dedup"]
            config.dedup = DedupConfig(
                similarity_threshold=dedup_data.get("similarity_threshold", config.dedup.similarity_threshold),
                min_substring_length=dedup_data.get("min_substring_length", config.dedup.min_substring_length),
            )

        return config
