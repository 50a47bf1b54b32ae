"""Tests for the contextkeeper CLI."""

import json
import sys
from pathlib import Path

import pytest

from contextkeeper.cli.main import load_messages, main

from tests.conftest import make_conversation


@pytest.fixture
def conversation_file(tmp_path: Path) -> Path:
    """Write a twenty-message conversation to a temporary file."""
    path = tmp_path / "conversation.json"
    path.write_text(json.dumps([m.to_dict() for m in make_conversation(20)]), encoding="utf-8")
    return path


class TestLoadMessages:
    """Tests for reading conversation files."""

    def test_list_file(self, conversation_file: Path):
        """Test loading a conversation saved as a plain list."""
        assert len(load_messages(str(conversation_file))) == 20

    def test_wrapped_file(self, tmp_path: Path):
        """Test loading a conversation wrapped in a messages object."""
        path = tmp_path / "wrapped.json"
        path.write_text(json.dumps({"messages": [{"role": "user", "content": "hi"}]}))
        messages = load_messages(str(path))
        assert messages[0].text_content() == "hi"


class TestCommands:
    """Tests for CLI subcommands."""

    def test_budget_json(self, conversation_file: Path, capsys):
        """Test the budget command's JSON output."""
        code = main(["budget", str(conversation_file), "--context-window", "128000", "--format", "json"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["context_window"] == 128_000
        assert data["history"] == 20 * 54
        assert data["output_reserve"] == 19_200
        assert data["usage_percent"] == 16

    def test_budget_uses_model_window(self, conversation_file: Path, capsys):
        """Test that --model selects the registry context window."""
        main(["budget", str(conversation_file), "--model", "claude-sonnet-4", "--format", "json"])
        assert json.loads(capsys.readouterr().out)["context_window"] == 200_000

    def test_budget_table(self, conversation_file: Path, capsys):
        """Test the budget command's table output."""
        assert main(["budget", str(conversation_file), "--context-window", "128000"]) == 0
        assert "history" in capsys.readouterr().out

    def test_compact_writes_output(self, conversation_file: Path, tmp_path: Path, capsys):
        """Test that compact writes the compacted conversation to --output."""
        output = tmp_path / "compacted.json"
        code = main(
            ["compact", str(conversation_file), "--context-window", "200", "--output", str(output)]
        )

        assert code == 0
        compacted = json.loads(output.read_text(encoding="utf-8"))
        assert len(compacted) == 12
        assert "Context compacted" in compacted[1]["content"][0]["text"]
        assert "Strategy: summarize" in capsys.readouterr().err

    def test_compact_no_op(self, conversation_file: Path, capsys):
        """Test that compact prints nothing to stdout when history fits."""
        code = main(["compact", str(conversation_file), "--context-window", "128000"])

        assert code == 0
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "No compaction needed" in captured.err

    def test_models_json(self, capsys):
        """Test the models command's JSON output."""
        assert main(["models", "--format", "json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["gpt-4o"]["context_window"] == 128_000

    def test_missing_file(self, tmp_path: Path, capsys):
        """Test that a missing conversation file exits with an error."""
        code = main(["budget", str(tmp_path / "missing.json")])
        assert code == 1
        assert "Error" in capsys.readouterr().err


class RecordingTelemetryManager:
    instances: list["RecordingTelemetryManager"] = []

    def __init__(self, config=None):
        self.entered = False
        self.exited = False
        RecordingTelemetryManager.instances.append(self)

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, *args):
        self.exited = True


class TestSummarizerOptions:
    """Tests for LLM summarization and telemetry wiring in the CLI."""

    def test_compact_with_llm_summarizer(self, conversation_file: Path, tmp_path: Path, capsys):
        """Test that --summarize puts the LLM summary into the compacted output."""
        output = tmp_path / "compacted.json"
        code = main(
            [
                "compact",
                str(conversation_file),
                "--context-window",
                "200",
                "--summarize",
                "--provider",
                "mock",
                "--output",
                str(output),
            ]
        )

        assert code == 0
        compacted = json.loads(output.read_text(encoding="utf-8"))
        summary = compacted[1]["content"][0]["text"]
        assert "Context compacted" in summary
        assert "Mock summary of the conversation." in summary

    def test_invalid_summarizer_timeout(self, conversation_file: Path, capsys):
        """Test that a non-positive summarizer timeout is rejected as a config error."""
        code = main(
            ["compact", str(conversation_file), "--context-window", "200", "--summarizer-timeout", "0"]
        )

        assert code == 1
        assert "summarizer_timeout" in capsys.readouterr().err

    def test_unknown_provider(self, conversation_file: Path, capsys):
        """Test that an unknown summarizer provider exits with an error."""
        code = main(
            ["compact", str(conversation_file), "--summarize", "--provider", "carrier-pigeon"]
        )

        assert code == 1
        assert "carrier-pigeon" in capsys.readouterr().err

    def test_commands_run_inside_telemetry_manager(self, monkeypatch, capsys):
        """Test that each command runs inside a TelemetryManager context."""
        RecordingTelemetryManager.instances = []
        monkeypatch.setattr(sys.modules["contextkeeper.cli.main"], "TelemetryManager", RecordingTelemetryManager)

        assert main(["models", "--format", "json"]) == 0

        assert len(RecordingTelemetryManager.instances) == 1
        manager = RecordingTelemetryManager.instances[0]
        assert manager.entered and manager.exited
