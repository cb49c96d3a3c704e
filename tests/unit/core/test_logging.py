# tests/unit/core/test_logging.py
"""Tests for structured logging configuration."""

import json
import logging

import pytest

from attractor.core.logging import bind_run_context, clear_run_context, configure_logging, get_logger


def _json_lines(out: str) -> list[dict]:
    return [json.loads(line) for line in out.splitlines() if line.startswith("{")]


class TestConfigureLogging:
    def test_json_lines_carry_run_context(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True, level="INFO")
        logger = get_logger("attractor.test")

        bind_run_context(graph="Demo", logs_root="runs/demo", resumed=False)
        try:
            logger.info("Node completed", node_id="plan")
        finally:
            clear_run_context()
        logger.info("Outside run")

        inside, outside = _json_lines(capsys.readouterr().out)
        assert inside["event"] == "Node completed"
        assert inside["node_id"] == "plan"
        assert (inside["graph"], inside["logs_root"], inside["resumed"]) == ("Demo", "runs/demo", False)
        assert "graph" not in outside

    def test_library_loggers_stay_quiet_at_debug(self) -> None:
        configure_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("dynaconf").level == logging.WARNING
