# tests/unit/engine/handlers/test_structural_handlers.py
"""Tests for pass-through and fan-in nodes."""

from collections.abc import Callable

import pytest

from attractor.contracts import StageStatus
from attractor.engine.handlers import StageRequest
from attractor.engine.handlers.structural import FanInHandler, PassThroughHandler

MakeRequest = Callable[..., StageRequest]


def _counts(success: int, fail: int) -> dict[str, str]:
    return {"parallel.success_count": str(success), "parallel.fail_count": str(fail)}


class TestPassThroughHandler:
    @pytest.mark.parametrize(("shape", "notes"), [("Mdiamond", "start node"), ("diamond", "conditional node")])
    def test_succeeds(self, make_request: MakeRequest, shape: str, notes: str) -> None:
        result = PassThroughHandler().execute(make_request(f"digraph G {{ n [shape={shape}] }}", "n"))

        assert result.status is StageStatus.SUCCESS
        assert result.notes == notes


class TestFanInHandler:
    def test_all_branches_succeeded(self, make_request: MakeRequest) -> None:
        result = FanInHandler().execute(make_request("digraph G { join [shape=tripleoctagon] }", "join", context=_counts(3, 0)))

        assert result.status is StageStatus.SUCCESS
        assert result.notes == "3/3 branches succeeded"

    def test_some_failed_is_partial(self, make_request: MakeRequest) -> None:
        result = FanInHandler().execute(make_request("digraph G { join [shape=tripleoctagon] }", "join", context=_counts(2, 1)))

        assert result.status is StageStatus.PARTIAL_SUCCESS

    def test_all_failed(self, make_request: MakeRequest) -> None:
        result = FanInHandler().execute(make_request("digraph G { join [shape=tripleoctagon] }", "join", context=_counts(0, 2)))

        assert result.status is StageStatus.FAIL
        assert result.failure_reason == "2/2 branches failed (join_policy=wait_all)"

    def test_all_success_policy_fails_on_any_failure(self, make_request: MakeRequest) -> None:
        dot = "digraph G { join [shape=tripleoctagon, join_policy=all_success] }"

        result = FanInHandler().execute(make_request(dot, "join", context=_counts(2, 1)))

        assert result.status is StageStatus.FAIL
        assert result.failure_reason == "1/3 branches failed (join_policy=all_success)"

    def test_no_branch_counts(self, make_request: MakeRequest) -> None:
        result = FanInHandler().execute(make_request("digraph G { join [shape=tripleoctagon] }", "join"))

        assert result.status is StageStatus.SUCCESS
        assert result.notes == "0/0 branches succeeded"
