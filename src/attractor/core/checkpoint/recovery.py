# src/attractor/core/checkpoint/recovery.py
"""Recovery protocol for resuming interrupted or failed runs.

- can_resume(graph): is there a checkpoint compatible with this graph?
- get_resume_point(graph): where execution continues, and with what state

The resume loop itself lives in the executor.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from attractor.contracts import Checkpoint, IncompatibleCheckpointError, ResumeCheck, ResumePoint
from attractor.core.canonical import compute_graph_hash
from attractor.core.checkpoint.manager import CheckpointManager

if TYPE_CHECKING:
    from attractor.core.dag.models import PipelineGraph

__all__ = ["RecoveryManager", "ResumeCheck", "ResumePoint"]


class RecoveryManager:
    """Decides whether and how a logs directory can be resumed.

    Usage:
        recovery = RecoveryManager(CheckpointManager(logs_root))
        check = recovery.can_resume(graph)
        if check.can_resume:
            point = recovery.get_resume_point(graph)
    """

    def __init__(self, checkpoint_manager: CheckpointManager) -> None:
        self._checkpoints = checkpoint_manager

    def _check(self, graph: PipelineGraph) -> tuple[ResumeCheck, Checkpoint | None]:
        try:
            checkpoint = self._checkpoints.load()
        except IncompatibleCheckpointError as exc:
            return ResumeCheck(can_resume=False, reason=str(exc)), None
        if checkpoint is None:
            return ResumeCheck(can_resume=False, reason=f"no checkpoint found in {self._checkpoints.logs_root}"), None

        if checkpoint.graph_hash is not None and checkpoint.graph_hash != compute_graph_hash(graph):
            return (
                ResumeCheck(
                    can_resume=False,
                    reason="graph topology changed since the checkpoint was written; resume requires the same graph",
                ),
                None,
            )

        unknown = [node_id for node_id in checkpoint.completed_nodes if node_id not in graph.nodes]
        for candidate in (checkpoint.next_node, checkpoint.current_node):
            if candidate is not None and candidate not in graph.nodes:
                unknown.append(candidate)
        if unknown:
            return (
                ResumeCheck(
                    can_resume=False,
                    reason=f"checkpoint references nodes missing from the graph: {', '.join(sorted(set(unknown)))}",
                ),
                None,
            )
        return ResumeCheck(can_resume=True), checkpoint

    def can_resume(self, graph: PipelineGraph) -> ResumeCheck:
        return self._check(graph)[0]

    def get_resume_point(self, graph: PipelineGraph) -> ResumePoint:
        """Determine where a resumed run continues.

        Raises:
            IncompatibleCheckpointError: If the checkpoint cannot be resumed.
        """
        check, checkpoint = self._check(graph)
        if checkpoint is None:
            raise IncompatibleCheckpointError(check.reason or "checkpoint cannot be resumed")

        if checkpoint.finished:
            return ResumePoint(checkpoint=checkpoint, node_id=None)
        if checkpoint.next_node is not None:
            return ResumePoint(checkpoint=checkpoint, node_id=checkpoint.next_node)
        return ResumePoint(checkpoint=checkpoint, node_id=graph.start_node.id, skip_completed=True)
