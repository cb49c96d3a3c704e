# src/attractor/engine/handlers/structural.py
"""Handlers for nodes that do no work of their own."""

from __future__ import annotations

from attractor.contracts import JoinPolicy, StageResult, StageStatus
from attractor.core.dag.models import FanInSpec
from attractor.engine.handlers.base import StageRequest


class PassThroughHandler:
    """start, exit and conditional nodes: succeed immediately.

    Conditional nodes route purely through their outgoing edge conditions.
    """

    def execute(self, request: StageRequest) -> StageResult:
        return StageResult.success(f"{request.node.kind.value} node")


class FanInHandler:
    """Joins parallel branches from the counts merged into the context.

    ``success`` when no branch failed, ``partial_success`` when some did,
    ``fail`` when all did or when ``join_policy=all_success`` and any did.
    """

    def execute(self, request: StageRequest) -> StageResult:
        spec = request.node.spec
        policy = spec.join_policy if isinstance(spec, FanInSpec) else JoinPolicy.WAIT_ALL
        failed = int(request.context.get("parallel.fail_count") or 0)
        succeeded = int(request.context.get("parallel.success_count") or 0)
        total = failed + succeeded
        notes = f"{succeeded}/{total} branches succeeded"

        if failed == 0:
            return StageResult.success(notes)
        if failed == total or policy is JoinPolicy.ALL_SUCCESS:
            return StageResult.fail(f"{failed}/{total} branches failed (join_policy={policy.value})")
        return StageResult(status=StageStatus.PARTIAL_SUCCESS, notes=notes)
