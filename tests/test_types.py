"""Tests for core types and configuration."""

import pytest

from contextkeeper.core.config import (
    CompactionConfig,
    ContextKeeperConfig,
    DedupConfig,
    FlushConfig,
)
from contextkeeper.core.errors import ConfigError, ContextKeeperError, InvalidMessage
from contextkeeper.core.types import (
    Message,
    Role,
    TextBlock,
    ThinkingBlock,
    ToolCallBlock,
    ToolResultBlock,
    Usage,
    block_from_dict,
)


class TestRole:
    """Tests for role parsing."""

    @pytest.mark.parametrize("value", ["tool_result", "toolResult", "tool-result", "tool"])
    def test_tool_result_aliases(self, value: str):
        """Test the accepted spellings of the tool result role."""
        assert Role.parse(value) == Role.TOOL_RESULT

    def test_case_insensitive(self):
        """Test that role parsing ignores case."""
        assert Role.parse("Assistant") == Role.ASSISTANT

    def test_unknown_role(self):
        """Test that an unknown role is rejected."""
        with pytest.raises(InvalidMessage):
            Role.parse("narrator")


class TestMessageConversion:
    """Tests for Message.from_dict / to_dict."""

    def test_string_content(self):
        """Test that string content becomes a single text block."""
        message = Message.from_dict({"role": "user", "content": "Hello"})
        assert message.content == (TextBlock("Hello"),)
        assert message.text_content() == "Hello"

    def test_block_content(self):
        """Test parsing block content and message metadata."""
        message = Message.from_dict(
            {
                "role": "assistant",
                "content": [
                    {"type": "thinking", "thinking": "hmm"},
                    {"type": "text", "text": "Answer"},
                    {"type": "toolCall", "name": "search", "arguments": {"q": "tea"}, "id": "c1"},
                ],
                "timestamp": 1000,
                "provider": "anthropic",
                "stopReason": "toolUse",
                "usage": {"input": 10, "output": 5, "cacheRead": 2, "cost": {"total": 0.01}},
            }
        )

        assert message.content == (
            ThinkingBlock("hmm"),
            TextBlock("Answer"),
            ToolCallBlock("search", {"q": "tea"}, "c1"),
        )
        assert message.timestamp == 1000
        assert message.provider == "anthropic"
        assert message.stop_reason == "toolUse"
        assert message.usage == Usage(input=10, output=5, cache_read=2, cost=0.01)

    def test_tool_result_content(self):
        """Test parsing tool result blocks."""
        message = Message.from_dict(
            {"role": "toolResult", "content": [{"type": "toolResult", "text": "42", "toolCallId": "c1"}]}
        )
        assert message.role == Role.TOOL_RESULT
        assert message.content == (ToolResultBlock("42", "c1"),)

    def test_unknown_blocks_skipped(self):
        """Test that unknown blocks are skipped while parsing."""
        message = Message.from_dict({"role": "user", "content": [{"type": "image"}, "text"]})
        assert message.content == (TextBlock("text"),)

    def test_missing_role(self):
        """Test that a message without a role is rejected."""
        with pytest.raises(InvalidMessage) as exc_info:
            Message.from_dict({"content": "hi"})
        assert exc_info.value.details["keys"] == ["content"]

    def test_round_trip_preserves_fields(self):
        """Test that to_dict and from_dict preserve every field."""
        original = Message(
            role=Role.ASSISTANT,
            content=(TextBlock("hi"), ToolCallBlock("lookup", {"id": 3}, "c9")),
            timestamp=5,
            api="messages",
            provider="anthropic",
            model="claude-sonnet-4",
            usage=Usage(total_tokens=7),
            stop_reason="stop",
        )
        assert Message.from_dict(original.to_dict()) == original

    def test_with_content_keeps_metadata(self):
        """Test that with_content keeps metadata and leaves the original alone."""
        original = Message.text(Role.USER, "a", timestamp=9, model="m")
        updated = original.with_content((TextBlock("b"),))

        assert updated.timestamp == 9
        assert updated.model == "m"
        assert original.content == (TextBlock("a"),)

    def test_block_from_dict_non_dict(self):
        """Test that non-dict blocks are ignored."""
        assert block_from_dict(42) is None


class TestConfig:
    """Tests for configuration validation."""

    def test_defaults(self):
        """Test default configuration values."""
        config = CompactionConfig()
        assert config.output_reserve_fraction == 0.15
        assert config.history_threshold_fraction == 0.80
        assert config.keep_recent_count == 10
        assert FlushConfig().offset_tokens == 4000
        assert FlushConfig().cooldown_ms == 60_000
        assert DedupConfig().similarity_threshold == 0.85

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"output_reserve_fraction": 0.0},
            {"output_reserve_fraction": 1.0},
            {"history_threshold_fraction": -0.1},
            {"keep_recent_count": -1},
        ],
    )
    def test_invalid_compaction_config(self, kwargs: dict):
        """Test that out-of-range compaction settings are rejected."""
        with pytest.raises(ConfigError):
            CompactionConfig(**kwargs).validate()

    def test_config_error_is_value_error(self):
        """Test that ConfigError is a ValueError."""
        with pytest.raises(ValueError):
            FlushConfig(cooldown_ms=-1).validate()

    def test_invalid_dedup_threshold(self):
        """Test that an out-of-range similarity threshold is rejected."""
        with pytest.raises(ConfigError) as exc_info:
            DedupConfig(similarity_threshold=1.5).validate()
        assert exc_info.value.field_name == "similarity_threshold"

    def test_top_level_config_round_trip(self):
        """Test that the top-level config survives to_dict and from_dict."""
        config = ContextKeeperConfig(
            compaction=CompactionConfig(keep_recent_count=6),
            flush=FlushConfig(cooldown_ms=30_000),
            summarizer_provider="anthropic",
        )
        config.validate()

        restored = ContextKeeperConfig.from_dict(config.to_dict())
        assert restored == config

    def test_from_dict_keeps_defaults(self):
        """Test that from_dict fills missing keys with defaults."""
        assert CompactionConfig.from_dict({"keep_recent_count": 4}) == CompactionConfig(keep_recent_count=4)

    def test_invalid_summarizer_timeout(self):
        """Test that a non-positive summarizer timeout is rejected."""
        with pytest.raises(ConfigError):
            ContextKeeperConfig(summarizer_timeout=0).validate()

    def test_summarizer_model_defaults_to_provider(self):
        """Test that an unset summarizer model survives a round trip as None."""
        config = ContextKeeperConfig()
        assert config.summarizer_provider == "openai"
        assert config.summarizer_model is None
        assert ContextKeeperConfig.from_dict(config.to_dict()).summarizer_model is None

    def test_error_to_dict(self):
        """Test the error's dictionary form."""
        error = ContextKeeperError("bad thing", {"k": 1})
        assert error.to_dict() == {
            "error_type": "ContextKeeperError",
            "message": "bad thing",
            "details": {"k": 1},
        }
