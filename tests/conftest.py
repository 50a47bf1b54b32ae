"""Pytest fixtures for contextkeeper tests."""

from typing import Callable

import pytest

from contextkeeper.core.config import CompactionConfig
from contextkeeper.core.types import (
    Message,
    Role,
    TextBlock,
    ThinkingBlock,
    ToolCallBlock,
    ToolResultBlock,
)

BASE_TIMESTAMP = 1_700_000_000_000


def make_message(role: Role, text: str, timestamp: int = BASE_TIMESTAMP, **kwargs) -> Message:
    """Single text-block message."""
    return Message(role=role, content=(TextBlock(text),), timestamp=timestamp, **kwargs)


def make_conversation(count: int, chars: int = 200, start: int = BASE_TIMESTAMP) -> list[Message]:
    """Seed user message followed by alternating user/assistant messages."""
    messages = [
        make_message(
            Role.USER,
            "Seed: " + "s" * (chars - 6),
            start,
            api="openai-completions",
            provider="openai",
            model="gpt-4o",
        )
    ]
    for i in range(1, count):
        role = Role.ASSISTANT if i % 2 else Role.USER
        body = f"Message {i}: "
        messages.append(make_message(role, body + "x" * (chars - len(body)), start + i * 1000))
    return messages


def tool_exchange(output: str, timestamp: int = BASE_TIMESTAMP) -> list[Message]:
    """Assistant tool call followed by its tool result."""
    call = Message(
        role=Role.ASSISTANT,
        content=(ToolCallBlock(name="search", arguments={"q": "weather"}, id="call_1"),),
        timestamp=timestamp,
    )
    result = Message(
        role=Role.TOOL_RESULT,
        content=(ToolResultBlock(output, tool_call_id="call_1"),),
        timestamp=timestamp + 1,
    )
    return [call, result]


def thinking_message(thinking: str, reply: str, timestamp: int = BASE_TIMESTAMP) -> Message:
    """Assistant message with a reasoning block and a text reply."""
    return Message(
        role=Role.ASSISTANT,
        content=(ThinkingBlock(thinking), TextBlock(reply)),
        timestamp=timestamp,
    )


class FakeSummarizer:
    """Async summarizer that records transcripts and returns a fixed text."""

    def __init__(self, summary: str = "- The user likes tea.", error: Exception = None):
        self.summary = summary
        self.error = error
        self.transcripts: list[str] = []

    async def __call__(self, transcript: str) -> str:
        self.transcripts.append(transcript)
        if self.error is not None:
            raise self.error
        return self.summary


@pytest.fixture
def default_config() -> CompactionConfig:
    """Default compaction thresholds."""
    return CompactionConfig()


@pytest.fixture
def fixed_clock() -> Callable[[], int]:
    """Clock frozen one hour after the base timestamp."""
    return lambda: BASE_TIMESTAMP + 3_600_000


@pytest.fixture
def conversation() -> list[Message]:
    """20 messages of ~200 chars each."""
    return make_conversation(20)
