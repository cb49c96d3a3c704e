# src/attractor/engine/parallel.py
"""Parallel fan-out: run every branch of a parallel node concurrently.

Branches run on a thread pool, each over its own copy of the context,
up to (not including) the shared fan-in node. Results are merged in
branch declaration order, so the fan-in never depends on which branch
finished first.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from attractor.contracts import (
    ExecutionError,
    NodeOutcome,
    ParallelCompleted,
    ParallelStarted,
    StageResult,
    StageStatus,
)
from attractor.core.context import ContextStore
from attractor.core.dag.graph import nearest_fan_in
from attractor.core.dag.models import Edge, Node, PipelineGraph
from attractor.core.events import EventBusProtocol
from attractor.core.logging import get_logger
from attractor.engine.shell import RUNNING_COMMANDS

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Branch:
    """One outgoing edge of a parallel node."""

    name: str
    start: str
    fan_in: str


@dataclass
class BranchResult:
    """What a branch did, merged into the run after all branches finish.

    Attributes:
        name: Branch name (edge label or target id).
        status: ``success``/``partial_success`` when the fan-in was
            reached, ``fail`` otherwise.
        changes: Context keys the branch set or changed.
        completed_nodes: Nodes the branch executed, in order.
        node_outcomes: Latest outcome of each executed node.
        node_visits: Visits made by the branch, per node.
        error: Why the branch failed, when it did.
    """

    name: str
    status: StageStatus
    changes: dict[str, str] = field(default_factory=dict)
    completed_nodes: list[str] = field(default_factory=list)
    node_outcomes: dict[str, NodeOutcome] = field(default_factory=dict)
    node_visits: dict[str, int] = field(default_factory=dict)
    error: str | None = None


type BranchRunner = Callable[[Branch, ContextStore], BranchResult]


def branches_of(graph: PipelineGraph, node: Node) -> list[Branch]:
    """Resolve the branches of a parallel node and their common fan-in.

    Raises:
        ExecutionError: If there are no branches, no fan-in, or the
            branches converge on different fan-in nodes.
    """
    edges: list[Edge] = [edge for edge in graph.edges if edge.source == node.id]
    if not edges:
        raise ExecutionError(f"parallel node '{node.id}' has no branches", node_id=node.id)
    fan_in = nearest_fan_in(graph, node.id)
    if fan_in is None:
        raise ExecutionError(f"parallel node '{node.id}' has no reachable fan-in node", node_id=node.id)

    branches: list[Branch] = []
    for edge in edges:
        target_fan_in = nearest_fan_in(graph, edge.target)
        if target_fan_in != fan_in:
            raise ExecutionError(
                f"parallel node '{node.id}': branch '{edge.branch_name}' does not converge on fan-in '{fan_in}'",
                node_id=node.id,
            )
        branches.append(Branch(name=edge.branch_name, start=edge.target, fan_in=fan_in))
    return branches


def merge_branch_results(results: list[BranchResult]) -> dict[str, str]:
    """Context keys summarizing the branches, in declaration order."""
    merged: dict[str, str] = {}
    for result in results:
        prefix = f"parallel.branch.{result.name}"
        merged[f"{prefix}.status"] = result.status.value
        if result.error:
            merged[f"{prefix}.error"] = result.error
        for key, value in result.changes.items():
            merged[f"{prefix}.{key}"] = value
    failed = sum(1 for result in results if result.status is StageStatus.FAIL)
    merged["parallel.fail_count"] = str(failed)
    merged["parallel.success_count"] = str(len(results) - failed)
    merged["parallel.branches"] = ",".join(result.name for result in results)
    return merged


class ParallelCoordinator:
    """Fans a parallel node out over its branches.

    Args:
        graph: The pipeline.
        run_branch: Executes one branch to its fan-in (supplied by the executor).
        max_workers: Thread pool size.
        events: Event bus for ParallelStarted/ParallelCompleted.
    """

    def __init__(
        self,
        graph: PipelineGraph,
        run_branch: BranchRunner,
        *,
        max_workers: int,
        events: EventBusProtocol,
    ) -> None:
        self._graph = graph
        self._run_branch = run_branch
        self._max_workers = max_workers
        self._events = events

    def fan_out(self, node: Node, context: Mapping[str, str]) -> tuple[StageResult, list[BranchResult]]:
        """Run all branches and build the parallel node's result.

        The parallel node itself succeeds whenever its branches ran; the
        fan-in node judges the branch outcomes.

        Raises:
            ExecutionError: If the branch structure is unsupported.
            KeyboardInterrupt: Re-raised once running branch commands are killed.
        """
        branches = branches_of(self._graph, node)
        self._events.emit(ParallelStarted(node_id=node.id, branches=tuple(b.name for b in branches)))
        logger.info("Parallel fan-out", node_id=node.id, branches=[b.name for b in branches])

        workers = min(self._max_workers, len(branches))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"attractor-{node.id}")
        try:
            futures = [pool.submit(self._run_branch, branch, ContextStore(context)) for branch in branches]
            results = [future.result() for future in futures]
        except BaseException:
            # Branch threads never see KeyboardInterrupt; their process groups are killed here.
            logger.warning("Parallel fan-out interrupted", node_id=node.id)
            with RUNNING_COMMANDS.cancelled():
                pool.shutdown(wait=True, cancel_futures=True)
            raise
        pool.shutdown(wait=True)

        merged = merge_branch_results(results)
        failed = int(merged["parallel.fail_count"])
        self._events.emit(ParallelCompleted(node_id=node.id, success_count=len(results) - failed, fail_count=failed))
        result = StageResult.success(
            f"{len(results)} branches ran, {failed} failed",
            context_updates=merged,
            suggested_next=branches[0].fan_in,
        )
        return result, results
