"""Tests for the model registry and context window guard."""

import pytest

from contextkeeper.context.guard import (
    BLOCK_THRESHOLD,
    WARN_THRESHOLD,
    evaluate_context_window_guard,
    format_window,
    get_effective_context_window,
)
from contextkeeper.models import (
    DEFAULT_CONTEXT_WINDOW,
    KNOWN_MODELS,
    ModelRef,
    get_model_config,
    get_model_context_window,
    parse_model_ref,
)


class TestModelRegistry:
    """Tests for model lookup."""

    def test_known_model(self):
        """Test context windows of registered models."""
        assert get_model_context_window("gpt-4o") == 128_000
        assert get_model_context_window("claude-sonnet-4") == 200_000

    def test_provider_prefixed_model(self):
        """Test lookup with a provider prefix."""
        assert get_model_context_window("openai/gpt-4o") == 128_000

    def test_unknown_model(self):
        """Test that unregistered models have no window."""
        assert get_model_context_window("my-local-model") is None
        assert get_model_config("") is None

    def test_registry_values_are_positive(self):
        """Test that every registry entry has sane limits."""
        for name, config in KNOWN_MODELS.items():
            assert config.context_window > 0, name
            assert 0 < config.output_token_limit <= config.context_window, name

    @pytest.mark.parametrize(
        "spec,expected",
        [
            ("openai/gpt-4o", ModelRef("openai", "gpt-4o")),
            ("gpt-4o", ModelRef(None, "gpt-4o")),
            ("claude/claude-opus-4", ModelRef("anthropic", "claude-opus-4")),
            ("OpenRouter/qwen/qwen-max", ModelRef("openrouter", "qwen/qwen-max")),
        ],
    )
    def test_parse_model_ref(self, spec: str, expected: ModelRef):
        """Test parsing provider/model references and provider aliases."""
        assert parse_model_ref(spec) == expected

    def test_model_ref_str(self):
        """Test the string form of a model reference."""
        assert str(ModelRef("openai", "gpt-4o")) == "openai/gpt-4o"
        assert str(ModelRef(None, "gpt-4o")) == "gpt-4o"


class TestContextWindowGuard:
    """Tests for evaluate_context_window_guard."""

    def test_override_wins(self):
        """Test that an explicit window overrides the registry."""
        result = evaluate_context_window_guard("gpt-4o", 50_000)
        assert result.context_window == 50_000
        assert result.source == "thread-override"

    def test_known_model(self):
        """Test that a registered model's window is used without warnings."""
        result = evaluate_context_window_guard("gemini-2.5-pro")
        assert result.context_window == 1_000_000
        assert result.source == "model-known"
        assert not result.should_warn
        assert result.warning_message is None

    def test_default_for_unknown(self):
        """Test the default window for unknown models."""
        result = evaluate_context_window_guard("mystery-model")
        assert result.context_window == DEFAULT_CONTEXT_WINDOW
        assert result.source == "default"

    @pytest.mark.parametrize("override", [0, -10, None])
    def test_non_positive_override_ignored(self, override):
        """Test that non-positive overrides are ignored."""
        assert evaluate_context_window_guard("gpt-4o", override).source == "model-known"

    def test_warns_on_small_window(self):
        """Test the warning for small windows."""
        result = evaluate_context_window_guard("x", WARN_THRESHOLD - 1)
        assert result.should_warn
        assert not result.should_block
        assert "small" in result.warning_message

    def test_blocks_tiny_window(self):
        """Test that tiny windows are blocked."""
        result = evaluate_context_window_guard("x", BLOCK_THRESHOLD - 1)
        assert result.should_block
        assert not result.should_warn
        assert "too small" in result.warning_message

    def test_effective_window(self):
        """Test the effective window helper."""
        assert get_effective_context_window("claude-opus-4") == 200_000
        assert get_effective_context_window("claude-opus-4", 64_000) == 64_000

    @pytest.mark.parametrize(
        "tokens,expected",
        [(900, "900"), (128_000, "128K"), (1_000_000, "1.0M")],
    )
    def test_format_window(self, tokens: int, expected: str):
        """Test compact window formatting."""
        assert format_window(tokens) == expected
