"""Tests for budget accounting and display helpers."""

import pytest

from contextkeeper.context.budget import (
    TokenBudget,
    calculate_budget,
    format_budget,
    format_token_count,
    token_usage_percent,
)
from contextkeeper.core.config import CompactionConfig
from contextkeeper.core.types import Message, Role

from tests.conftest import make_conversation


class TestCalculateBudget:
    """Tests for calculate_budget."""

    def test_breakdown(self):
        """Test that each budget component is estimated from its own input."""
        messages = [Message.text(Role.USER, "abcdefgh")]
        budget = calculate_budget(1000, "x" * 40, "y" * 20, messages)

        assert budget.context_window == 1000
        assert budget.system_prompt == 10
        assert budget.lorebook == 5
        assert budget.history == 4 + 2
        assert budget.output_reserve == 150
        assert budget.available == 1000 - 10 - 5 - 6 - 150

    def test_available_never_negative(self):
        """Test that an overfull window reports zero available tokens."""
        messages = make_conversation(30)
        budget = calculate_budget(100, "system " * 50, "", messages)

        assert budget.available == 0
        assert budget.used > budget.context_window

    @pytest.mark.parametrize("window", [0, -500])
    def test_non_positive_window_is_clamped(self, window: int):
        """Test that zero or negative windows are clamped to zero."""
        budget = calculate_budget(window, "system", "", [Message.text(Role.USER, "hi")])

        assert budget.context_window == 0
        assert budget.output_reserve == 0
        assert budget.available == 0

    @pytest.mark.parametrize("window", [500, 8_000, 128_000])
    def test_available_formula(self, window: int):
        """Test that available is the window minus every other component."""
        messages = make_conversation(12)
        budget = calculate_budget(window, "You are a helpful assistant.", "Lore entry", messages)

        expected = max(
            0,
            window - budget.system_prompt - budget.lorebook - budget.history - budget.output_reserve,
        )
        assert budget.available == expected
        assert budget.available >= 0

    def test_custom_reserve_fraction(self):
        """Test that the output reserve follows the configured fraction."""
        config = CompactionConfig(output_reserve_fraction=0.25)
        budget = calculate_budget(1000, "", "", [], config)

        assert budget.output_reserve == 250
        assert budget.history == 0
        assert budget.available == 750

    def test_to_dict(self):
        """Test that to_dict exposes exactly the budget components."""
        budget = calculate_budget(1000, "", "", [])
        data = budget.to_dict()

        assert data["context_window"] == 1000
        assert data["available"] == budget.available
        assert set(data) == {
            "context_window",
            "system_prompt",
            "lorebook",
            "history",
            "output_reserve",
            "available",
        }


class TestFormatting:
    """Tests for display helpers."""

    @pytest.mark.parametrize(
        "tokens,expected",
        [
            (0, "0"),
            (500, "500"),
            (999, "999"),
            (1000, "1.0K"),
            (1500, "1.5K"),
            (128000, "128.0K"),
        ],
    )
    def test_format_token_count(self, tokens: int, expected: str):
        """Test compact token count formatting."""
        assert format_token_count(tokens) == expected

    def test_format_budget_skips_zero_parts(self):
        """Test that zero-sized components are left out of the summary line."""
        budget = TokenBudget(
            context_window=10_000,
            system_prompt=1200,
            lorebook=0,
            history=800,
            output_reserve=1500,
            available=6500,
        )
        assert format_budget(budget) == "system: 1.2K · history: 800 · reserve: 1.5K · available: 6.5K"

    def test_usage_percent(self):
        """Test usage percentage including overflow and an empty window."""
        assert token_usage_percent(64000, 128000) == 50
        assert token_usage_percent(200000, 128000) == 100
        assert token_usage_percent(100, 0) == 0

    def test_usage_percent_rounds(self):
        """Test that usage percentage rounds half up."""
        assert token_usage_percent(1, 200) == 1  # 0.5 rounds up
        assert token_usage_percent(1, 300) == 0
