# tests/unit/cli/test_cli_formatters.py
"""Tests for console and JSON event formatters."""

import json

import pytest

from attractor.cli_formatters import create_console_formatters, create_json_formatters, subscribe_formatters
from attractor.contracts import (
    LoopRestarted,
    NodeCompleted,
    NodeStarted,
    PipelineClass,
    RunFinished,
    RunStarted,
    RunStatus,
    StageStatus,
)
from attractor.core.events import EventBus


class TestConsoleFormatters:
    def test_progress_lines(self, capsys: pytest.CaptureFixture[str]) -> None:
        bus = EventBus()
        subscribe_formatters(bus, create_console_formatters("Resume"))

        bus.emit(RunStarted(name="Demo", classification=PipelineClass.HYBRID, logs_root="runs/demo", resumed=True))
        bus.emit(NodeStarted(node_id="plan", kind="llm", visit=2))
        bus.emit(NodeCompleted(node_id="plan", status=StageStatus.PARTIAL_SUCCESS, attempt=1, notes="meh", duration_seconds=0.5))
        bus.emit(LoopRestarted(edge_source="check", edge_target="plan", restart_count=1))
        bus.emit(RunFinished(status=RunStatus.FAILED, completed_nodes=3, duration_seconds=90.0, error="boom"))

        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "[HYBRID] resuming 'Demo' → runs/demo"
        assert lines[1] == "  → plan [llm] (visit 2)"
        assert lines[2] == "    ⚠ plan partial_success in 0.50s: meh"
        assert lines[3] == "  ⟲ restart 1: check → plan"
        assert lines[-1] == "✗ Resume FAILED: 3 nodes completed | 1.5m total"

    def test_first_visit_has_no_suffix(self, capsys: pytest.CaptureFixture[str]) -> None:
        create_console_formatters()[NodeStarted](NodeStarted(node_id="a", kind="tool", visit=1))

        assert capsys.readouterr().out == "  → a [tool]\n"


class TestJsonFormatters:
    def test_json_lines(self, capsys: pytest.CaptureFixture[str]) -> None:
        formatters = create_json_formatters()

        formatters[NodeCompleted](
            NodeCompleted(node_id="build", status=StageStatus.FAIL, attempt=2, notes="x", duration_seconds=1.0)
        )
        formatters[RunFinished](RunFinished(status=RunStatus.COMPLETED, completed_nodes=4, duration_seconds=2.0))

        first, second = (json.loads(line) for line in capsys.readouterr().out.splitlines())
        assert first == {
            "event": "node_completed",
            "node_id": "build",
            "status": "fail",
            "attempt": 2,
            "notes": "x",
            "duration_seconds": 1.0,
        }
        assert second["event"] == "run_finished"
        assert second["error"] is None

    def test_only_summary_events(self) -> None:
        assert set(create_json_formatters()) == {RunStarted, NodeCompleted, RunFinished}
