"""Custom exceptions for contextkeeper.

Only configuration, message parsing and provider lookup surface errors to the
caller. Tokenizer and summarizer failures are raised internally and always
caught at the estimator / compaction boundary.
"""

from typing import Any, Optional


class ContextKeeperError(Exception):
    """Base exception for all contextkeeper errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigError(ContextKeeperError, ValueError):
    """Raised when a configuration value is out of range.

    Examples:
    - output_reserve_fraction outside (0, 1)
    - negative keep_recent_count
    """

    def __init__(self, field_name: str, value: Any, reason: str):
        super().__init__(
            f"Invalid {field_name}={value!r}: {reason}",
            details={"field": field_name, "value": value, "reason": reason},
        )
        self.field_name = field_name
        self.value = value


class InvalidMessage(ContextKeeperError):
    """Raised when a message dict cannot be converted to a Message."""

    def __init__(self, reason: str, data: Optional[dict[str, Any]] = None):
        super().__init__(
            f"Invalid message: {reason}",
            details={"keys": sorted((data or {}).keys())},
        )
        self.reason = reason


class SummarizerFailed(ContextKeeperError):
    """Raised by a summarizer capability that could not produce a summary.

    The compaction ladder catches this and falls back to the
    deterministic summary.
    """

    def __init__(self, reason: str, provider: Optional[str] = None):
        super().__init__(
            f"Summarizer failed: {reason}",
            details={"provider": provider},
        )
        self.reason = reason
        self.provider = provider


class TokenizerUnavailable(ContextKeeperError):
    """Raised when a precise tokenizer could not be loaded."""

    def __init__(self, encoding: str, cause: Optional[str] = None):
        super().__init__(
            f"Tokenizer unavailable: {encoding}",
            details={"encoding": encoding, "cause": cause},
        )
        self.encoding = encoding


class UnknownProvider(ContextKeeperError, ValueError):
    """Raised when an LLM provider name is not recognised."""

    def __init__(self, provider: str, valid: list[str]):
        super().__init__(
            f"Unknown provider: {provider}. Valid providers: {valid}",
            details={"provider": provider, "valid": valid},
        )
        self.provider = provider
