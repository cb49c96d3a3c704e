# src/attractor/engine/executor.py
"""PipelineExecutor: drives a validated graph from start to exit.

Per step along the main path:

1. enforce ``max_steps`` and the node's ``max_visits``
2. run the node's handler under its retry budget
3. record the outcome, write status.json, update the context
4. at the exit node, enforce ``goal_gate`` nodes and finish
5. otherwise select the next edge, apply ``loop_restart`` and edge
   fidelity, and checkpoint with ``next_node`` set

Every failure after the run started flushes a checkpoint whose
``next_node`` is the node that failed, so ``--resume`` retries it.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType

from attractor import __version__
from attractor.contracts import (
    Checkpoint,
    ExecutionError,
    GateUnsatisfiedError,
    LoopBoundExceeded,
    LoopRestarted,
    Manifest,
    NodeCompleted,
    NodeFailedError,
    NodeKind,
    NodeOutcome,
    NodeRetrying,
    NodeSkipped,
    NodeStarted,
    PipelineClass,
    RunFinished,
    RunStarted,
    RunStatus,
    StageResult,
    StageStatus,
)
from attractor.core.canonical import compute_graph_hash
from attractor.core.checkpoint import CheckpointManager, RecoveryManager
from attractor.core.config import AttractorSettings
from attractor.core.context import ContextStore
from attractor.core.dag.models import Edge, FidelityPolicy, Node, PipelineGraph
from attractor.core.dag.parser import parse_fidelity
from attractor.core.dag.validation import validate_graph
from attractor.core.events import EventBusProtocol, NullEventBus
from attractor.core.logging import bind_run_context, clear_run_context, get_logger
from attractor.engine.artifacts import STATUS_FILENAME, FilesystemArtifactSink
from attractor.engine.handlers import HandlerServices, NodeHandler, StageRequest, build_handler_registry
from attractor.engine.handlers.goal import unsatisfied
from attractor.engine.interviewer import Interviewer
from attractor.engine.parallel import Branch, BranchResult, ParallelCoordinator
from attractor.engine.retry import MaxRetriesExceeded, RetryConfig, RetryManager
from attractor.engine.routing import select_edge
from attractor.plugins.llm.base import LLMBackend
from attractor.plugins.manager import PluginManager

logger = get_logger(__name__)

LAST_STAGE_KEY = "last_stage"


@dataclass(frozen=True)
class RunResult:
    """Result of a pipeline run."""

    status: RunStatus
    logs_root: Path
    completed_nodes: tuple[str, ...]
    context: Mapping[str, str]
    duration_seconds: float
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.COMPLETED


@dataclass
class RunState:
    """Mutable progress of one run (or of one parallel branch)."""

    context: ContextStore
    completed_nodes: list[str] = field(default_factory=list)
    node_outcomes: dict[str, NodeOutcome] = field(default_factory=dict)
    node_visits: dict[str, int] = field(default_factory=dict)
    loop_counters: dict[str, int] = field(default_factory=dict)
    restart_count: int = 0
    steps: int = 0
    entry_fidelity: FidelityPolicy | None = None

    @classmethod
    def from_checkpoint(cls, checkpoint: Checkpoint) -> RunState:
        return cls(
            context=ContextStore(checkpoint.context),
            completed_nodes=list(checkpoint.completed_nodes),
            node_outcomes=dict(checkpoint.node_outcomes),
            node_visits=dict(checkpoint.node_visits),
            loop_counters=dict(checkpoint.loop_counters),
            restart_count=checkpoint.restart_count,
            entry_fidelity=parse_fidelity(checkpoint.entry_fidelity) if checkpoint.entry_fidelity else None,
        )

    def record(self, node_id: str, outcome: NodeOutcome) -> None:
        if node_id not in self.completed_nodes:
            self.completed_nodes.append(node_id)
        self.node_outcomes[node_id] = outcome

    def to_checkpoint(
        self,
        *,
        status: RunStatus,
        current_node: str | None,
        next_node: str | None,
        graph_hash: str,
        context: Mapping[str, str] | None = None,
    ) -> Checkpoint:
        return Checkpoint(
            timestamp=datetime.now(UTC).isoformat(),
            completed_nodes=tuple(self.completed_nodes),
            context=self.context.snapshot() if context is None else context,
            node_outcomes=dict(self.node_outcomes),
            status=status,
            current_node=current_node,
            next_node=next_node,
            node_visits=dict(self.node_visits),
            loop_counters=dict(self.loop_counters),
            restart_count=self.restart_count,
            graph_hash=graph_hash,
            entry_fidelity=None if self.entry_fidelity is None else str(self.entry_fidelity),
        )


def _satisfied_nodes(checkpoint: Checkpoint) -> set[str]:
    return {
        node_id
        for node_id in checkpoint.completed_nodes
        if node_id in checkpoint.node_outcomes and checkpoint.node_outcomes[node_id].status.satisfied
    }


class _AttemptFailed(Exception):
    """A handler attempt returned FAIL; retried while budget remains."""

    def __init__(self, result: StageResult) -> None:
        self.result = result
        super().__init__(result.failure_reason or result.notes or "stage failed")


@dataclass
class _StepOutcome:
    result: StageResult
    attempt: int


class PipelineExecutor:
    """Executes one pipeline graph into one logs directory.

    Example:
        executor = PipelineExecutor(
            graph,
            logs_root=Path("runs/demo"),
            settings=load_settings(),
            llm_backend=SimulatedLLMBackend(),
            interviewer=AutoApproveInterviewer(),
        )
        result = executor.run()
        resumed = executor.run(resume=True)
    """

    def __init__(
        self,
        graph: PipelineGraph,
        *,
        logs_root: Path,
        settings: AttractorSettings,
        llm_backend: LLMBackend,
        interviewer: Interviewer,
        plugins: PluginManager | None = None,
        events: EventBusProtocol | None = None,
        sleep: Callable[[float], None] = time.sleep,
        simulate: bool = False,
    ) -> None:
        self._graph = graph
        self._logs_root = logs_root
        self._settings = settings
        self._events: EventBusProtocol = events if events is not None else NullEventBus()
        self._sleep = sleep
        self._simulate = simulate
        if plugins is None:
            plugins = PluginManager()
            plugins.register_builtin_plugins()

        self._graph_hash = compute_graph_hash(graph)
        self._artifacts = FilesystemArtifactSink(logs_root)
        self._checkpoints = CheckpointManager(logs_root)
        self._branch_lock = threading.Lock()
        self._state: RunState | None = None

        services = HandlerServices(
            settings=settings,
            plugins=plugins,
            llm_backend=llm_backend,
            interviewer=interviewer,
            sleep=sleep,
        )
        coordinator = ParallelCoordinator(
            graph,
            self._run_branch,
            max_workers=settings.concurrency.max_workers,
            events=self._events,
        )
        self._handlers: Mapping[NodeKind, NodeHandler] = build_handler_registry(
            services, coordinator, self._record_branches
        )

    @property
    def checkpoints(self) -> CheckpointManager:
        return self._checkpoints

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def run(self, *, resume: bool = False) -> RunResult:
        """Run the pipeline, fresh or from the logs directory's checkpoint.

        Returns:
            RunResult; ``status`` is FAILED when the run stopped on an error.

        Raises:
            GraphValidationError: If the graph is structurally invalid.
            IncompatibleCheckpointError: If ``resume`` and the checkpoint
                cannot be resumed against this graph.
            KeyboardInterrupt: After the interrupted node was checkpointed.
        """
        bind_run_context(graph=self._graph.name, logs_root=str(self._logs_root), resumed=resume)
        try:
            return self._run(resume)
        finally:
            clear_run_context()

    def _run(self, resume: bool) -> RunResult:
        report = validate_graph(self._graph)
        started = time.monotonic()
        self._logs_root.mkdir(parents=True, exist_ok=True)

        if resume:
            point = RecoveryManager(self._checkpoints).get_resume_point(self._graph)
            state = RunState.from_checkpoint(point.checkpoint)
            node_id = point.node_id
            skip = set()
            if point.skip_completed:
                skip = _satisfied_nodes(point.checkpoint)
                state.entry_fidelity = None
        else:
            state = RunState(context=ContextStore.for_graph(self._graph))
            node_id = self._graph.start_node.id
            skip = set()
            self._checkpoints.write_manifest(self._manifest(report.classification))

        self._state = state
        self._events.emit(
            RunStarted(
                name=self._graph.name,
                classification=report.classification,
                logs_root=str(self._logs_root),
                resumed=resume,
            )
        )
        logger.info("Run started", classification=report.classification.value)

        if node_id is None:
            logger.info("Checkpoint already finished; nothing to resume")
            return self._finish(state, RunStatus.COMPLETED, started)

        try:
            self._drive(state, node_id, skip)
        except ExecutionError as exc:
            error = str(self._enrich(exc))
            logger.error("Run failed", error=error, node_id=exc.node_id)
            return self._finish(state, RunStatus.FAILED, started, error=error)
        return self._finish(state, RunStatus.COMPLETED, started)

    def _manifest(self, classification: PipelineClass) -> Manifest:
        return Manifest(
            name=self._graph.name,
            goal=self._graph.goal,
            start_time=datetime.now(UTC).isoformat(),
            classification=classification,
            graph_hash=self._graph_hash,
            simulate=self._simulate,
            engine_version=__version__,
        )

    def _finish(self, state: RunState, status: RunStatus, started: float, *, error: str | None = None) -> RunResult:
        duration = time.monotonic() - started
        self._events.emit(
            RunFinished(
                status=status,
                completed_nodes=len(state.completed_nodes),
                duration_seconds=duration,
                error=error,
            )
        )
        logger.info("Run finished", status=status.value, completed=len(state.completed_nodes))
        return RunResult(
            status=status,
            logs_root=self._logs_root,
            completed_nodes=tuple(state.completed_nodes),
            context=MappingProxyType(state.context.snapshot()),
            duration_seconds=duration,
            error=error,
        )

    def _enrich(self, exc: ExecutionError) -> ExecutionError:
        """Name the goal gates when a node failure leaves them unsatisfiable."""
        if not isinstance(exc, NodeFailedError):
            return exc
        if not any(node.goal_gate or node.kind is NodeKind.GOAL_GATE for node in self._graph):
            return exc
        return GateUnsatisfiedError(f"goal gate unsatisfied: {exc}", node_id=exc.node_id)

    # ------------------------------------------------------------------
    # Main path
    # ------------------------------------------------------------------

    def _save(self, state: RunState, *, status: RunStatus, current: str | None, next_node: str | None) -> None:
        self._checkpoints.save(
            state.to_checkpoint(status=status, current_node=current, next_node=next_node, graph_hash=self._graph_hash)
        )
        if state.restart_count:
            cycle_context = {k: v for k, v in state.context.snapshot().items() if k != LAST_STAGE_KEY}
            self._checkpoints.save_cycle(
                state.restart_count,
                state.to_checkpoint(
                    status=status,
                    current_node=current,
                    next_node=next_node,
                    graph_hash=self._graph_hash,
                    context=cycle_context,
                ),
            )

    def _drive(self, state: RunState, node_id: str, skip: set[str]) -> None:
        exit_id = self._graph.exit_node.id
        view = self._project(state.context, state.entry_fidelity)
        current = node_id

        while True:
            node = self._graph.node(current)
            try:
                if current in skip and current != exit_id:
                    skip.discard(current)
                    self._events.emit(NodeSkipped(node_id=current))
                    logger.debug("Skipping node completed before resume", node_id=current)
                    previous = state.node_outcomes[current]
                    result = StageResult(
                        status=previous.status,
                        notes=previous.notes,
                        failure_reason=previous.failure_reason,
                        preferred_label=previous.preferred_label,
                    )
                else:
                    state.steps += 1
                    if state.steps > self._settings.engine.max_steps:
                        raise LoopBoundExceeded(
                            f"run exceeded max_steps ({self._settings.engine.max_steps}) at node '{current}'",
                            node_id=current,
                        )
                    result = self._execute_node(node, state, view).result

                if current == exit_id:
                    self._enforce_goal_gates(state)
                    self._save(state, status=RunStatus.COMPLETED, current=current, next_node=None)
                    return

                if result.suggested_next is not None:
                    current = result.suggested_next
                    state.entry_fidelity = None
                    view = state.context.snapshot()
                    self._save(state, status=RunStatus.RUNNING, current=node.id, next_node=current)
                    continue

                edge = select_edge(self._graph, node.id, result, state.context.snapshot())
                if edge is None:
                    raise self._no_route(node, result)
                if edge.loop_restart:
                    self._restart(state, edge)
                state.entry_fidelity = self._edge_policy(edge)
                view = self._project(state.context, state.entry_fidelity)
                current = edge.target
                self._save(state, status=RunStatus.RUNNING, current=node.id, next_node=current)
            except ExecutionError:
                self._save(state, status=RunStatus.FAILED, current=current, next_node=current)
                raise
            except Exception as exc:
                logger.exception("Unexpected error in node", node_id=current)
                self._save(state, status=RunStatus.FAILED, current=current, next_node=current)
                raise ExecutionError(f"node '{current}' raised {type(exc).__name__}: {exc}", node_id=current) from exc
            except KeyboardInterrupt:
                logger.warning("Run interrupted", node_id=current)
                self._save(state, status=RunStatus.FAILED, current=current, next_node=current)
                raise

    def _no_route(self, node: Node, result: StageResult) -> ExecutionError:
        if result.status is StageStatus.FAIL:
            reason = result.failure_reason or result.notes or "stage failed"
            message = f"node '{node.id}' failed: {reason}"
            if node.goal_gate:
                return GateUnsatisfiedError(f"goal gate node '{node.id}' unsatisfied: {reason}", node_id=node.id)
            return NodeFailedError(message, node_id=node.id)
        return ExecutionError(f"no eligible outgoing edge from node '{node.id}'", node_id=node.id)

    def _enforce_goal_gates(self, state: RunState) -> None:
        flagged = [node.id for node in self._graph if node.goal_gate]
        problems = unsatisfied(flagged, state.node_outcomes)
        if problems:
            exit_id = self._graph.exit_node.id
            raise GateUnsatisfiedError(
                f"goal gate unsatisfied at exit: {', '.join(problems)}",
                node_id=exit_id,
            )

    def _restart(self, state: RunState, edge: Edge) -> None:
        state.restart_count += 1
        state.context = state.context.retain_graph_keys()
        self._events.emit(LoopRestarted(edge_source=edge.source, edge_target=edge.target, restart_count=state.restart_count))
        logger.info("Loop restart", source=edge.source, target=edge.target, restart_count=state.restart_count)

    def _edge_policy(self, edge: Edge) -> FidelityPolicy | None:
        return edge.fidelity or self._graph.default_fidelity

    def _project(self, context: ContextStore, policy: FidelityPolicy | None) -> Mapping[str, str]:
        return context.project(policy, self._settings.fidelity.default_truncate_limit)

    # ------------------------------------------------------------------
    # Node execution (shared by the main path and parallel branches)
    # ------------------------------------------------------------------

    def _execute_node(self, node: Node, state: RunState, view: Mapping[str, str]) -> _StepOutcome:
        visit = state.node_visits.get(node.id, 0) + 1
        if node.max_visits is not None and visit > node.max_visits:
            raise LoopBoundExceeded(
                f"node '{node.id}' exceeded max_visits ({node.max_visits})",
                node_id=node.id,
            )
        state.node_visits[node.id] = visit

        handler = self._handlers[node.kind]
        self._events.emit(NodeStarted(node_id=node.id, kind=node.kind.value, visit=visit))
        logger.debug("Node started", node_id=node.id, kind=node.kind.value, visit=visit)
        started = time.monotonic()

        def attempt(number: int) -> _StepOutcome:
            request = StageRequest(
                node=node,
                graph=self._graph,
                context=view,
                attempt=number,
                visit=visit,
                artifacts=self._artifacts,
                outcomes=dict(state.node_outcomes),
                loop_counters=state.loop_counters,
            )
            result = handler.execute(request)
            if result.status is StageStatus.FAIL:
                raise _AttemptFailed(result)
            return _StepOutcome(result=result, attempt=number)

        def on_retry(number: int, error: BaseException) -> None:
            self._events.emit(NodeRetrying(node_id=node.id, attempt=number, reason=str(error)))
            logger.info("Retrying node", node_id=node.id, attempt=number, reason=str(error))

        retry = RetryManager(RetryConfig.for_node(node.max_retries, self._settings.retry), sleep=self._sleep)
        try:
            step = retry.execute_with_retry(
                attempt,
                is_retryable=lambda e: isinstance(e, _AttemptFailed),
                on_retry=on_retry,
            )
        except MaxRetriesExceeded as exc:
            assert isinstance(exc.last_error, _AttemptFailed)
            step = _StepOutcome(result=exc.last_error.result, attempt=exc.attempts)

        result = step.result
        outcome = NodeOutcome.from_result(result, step.attempt)
        state.context.update(result.context_updates)
        state.context.set(LAST_STAGE_KEY, node.id)
        state.record(node.id, outcome)
        if result.status_artifact:
            self._write_status(node, result, outcome)

        duration = time.monotonic() - started
        self._events.emit(
            NodeCompleted(
                node_id=node.id,
                status=result.status,
                attempt=step.attempt,
                notes=result.notes,
                duration_seconds=duration,
            )
        )
        logger.info(
            "Node completed",
            node_id=node.id,
            status=result.status.value,
            attempt=step.attempt,
            duration_seconds=round(duration, 3),
        )
        return step

    def _write_status(self, node: Node, result: StageResult, outcome: NodeOutcome) -> None:
        payload = {
            **outcome.to_dict(),
            "outcome": result.status.value,
            "context_updates": dict(result.context_updates),
        }
        self._artifacts.write_json(node.id, STATUS_FILENAME, payload)

    # ------------------------------------------------------------------
    # Parallel branches
    # ------------------------------------------------------------------

    def _run_branch(self, branch: Branch, context: ContextStore) -> BranchResult:
        """Run one branch on its own context copy until it reaches the fan-in."""
        base = context.snapshot()
        main = self._state
        visits = dict(main.node_visits) if main is not None else {}
        state = RunState(context=context, node_visits=visits)
        before_visits = dict(visits)
        view: Mapping[str, str] = base
        current = branch.start
        last_status = StageStatus.SUCCESS
        error: str | None = None

        try:
            while current != branch.fan_in:
                node = self._graph.node(current)
                if node.kind is NodeKind.PARALLEL:
                    raise ExecutionError(f"nested parallel node '{node.id}' is not supported", node_id=node.id)
                if node.kind is NodeKind.EXIT:
                    raise ExecutionError(f"branch reached exit node '{node.id}' before fan-in", node_id=node.id)
                state.steps += 1
                if state.steps > self._settings.engine.max_steps:
                    raise LoopBoundExceeded(f"branch exceeded max_steps at node '{node.id}'", node_id=node.id)

                result = self._execute_node(node, state, view).result
                last_status = result.status
                edge = select_edge(self._graph, node.id, result, state.context.snapshot())
                if edge is None:
                    raise self._no_route(node, result)
                if edge.loop_restart:
                    raise ExecutionError(f"loop_restart edge inside parallel branch at '{node.id}'", node_id=node.id)
                view = self._project(state.context, self._edge_policy(edge))
                current = edge.target
        except ExecutionError as exc:
            error = str(exc)
            last_status = StageStatus.FAIL
            logger.warning("Parallel branch failed", branch=branch.name, error=error)
        except Exception as exc:
            error = f"node '{current}' raised {type(exc).__name__}: {exc}"
            last_status = StageStatus.FAIL
            logger.exception("Parallel branch raised", branch=branch.name, node_id=current)

        return BranchResult(
            name=branch.name,
            status=last_status,
            changes={k: v for k, v in state.context.changed_since(base).items() if k != LAST_STAGE_KEY},
            completed_nodes=list(state.completed_nodes),
            node_outcomes=dict(state.node_outcomes),
            node_visits={k: v - before_visits.get(k, 0) for k, v in state.node_visits.items() if v != before_visits.get(k, 0)},
            error=error,
        )

    def _record_branches(self, results: Sequence[BranchResult]) -> None:
        state = self._state
        assert state is not None, "branches recorded outside a run"
        with self._branch_lock:
            for result in results:
                for node_id in result.completed_nodes:
                    state.record(node_id, result.node_outcomes[node_id])
                for node_id, visits in result.node_visits.items():
                    state.node_visits[node_id] = state.node_visits.get(node_id, 0) + visits
