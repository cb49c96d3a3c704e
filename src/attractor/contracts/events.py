# src/attractor/contracts/events.py
"""Domain events emitted by the engine for CLI observability.

Events are immutable and carry only primitives so formatters never reach
back into engine state.
"""

from dataclasses import dataclass

from attractor.contracts.enums import PipelineClass, RunStatus, StageStatus


@dataclass(frozen=True, slots=True)
class RunStarted:
    name: str
    classification: PipelineClass
    logs_root: str
    resumed: bool


@dataclass(frozen=True, slots=True)
class NodeStarted:
    node_id: str
    kind: str
    visit: int


@dataclass(frozen=True, slots=True)
class NodeRetrying:
    """A failed attempt is about to be retried."""

    node_id: str
    attempt: int
    reason: str


@dataclass(frozen=True, slots=True)
class NodeCompleted:
    node_id: str
    status: StageStatus
    attempt: int
    notes: str
    duration_seconds: float


@dataclass(frozen=True, slots=True)
class NodeSkipped:
    """A node already completed in a resumed checkpoint was not re-run."""

    node_id: str


@dataclass(frozen=True, slots=True)
class ParallelStarted:
    node_id: str
    branches: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ParallelCompleted:
    node_id: str
    success_count: int
    fail_count: int


@dataclass(frozen=True, slots=True)
class LoopRestarted:
    edge_source: str
    edge_target: str
    restart_count: int


@dataclass(frozen=True, slots=True)
class RunFinished:
    status: RunStatus
    completed_nodes: int
    duration_seconds: float
    error: str | None = None
