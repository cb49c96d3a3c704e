# src/attractor/contracts/checkpoint.py
"""On-disk run records: checkpoint.json and manifest.json.

Both are plain JSON documents read by external tooling, so the field
names of the first four checkpoint keys and all manifest keys are a
public contract. Extra keys are engine bookkeeping for resume.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from attractor.contracts.enums import PipelineClass, RunStatus
from attractor.contracts.outcome import NodeOutcome

CHECKPOINT_FORMAT_VERSION = 1


def context_value(value: Any) -> str:
    """Coerce a JSON value into the string form stored in the context.

    Hand-edited checkpoints may carry booleans or numbers
    (``"manager.stop": true``); the context only holds strings.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _frozen(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Snapshot of run progress written after every node completion."""

    timestamp: str
    completed_nodes: tuple[str, ...]
    context: Mapping[str, str]
    node_outcomes: Mapping[str, NodeOutcome]
    status: RunStatus = RunStatus.RUNNING
    current_node: str | None = None
    next_node: str | None = None
    node_visits: Mapping[str, int] = field(default_factory=dict)
    loop_counters: Mapping[str, int] = field(default_factory=dict)
    restart_count: int = 0
    graph_hash: str | None = None
    entry_fidelity: str | None = None
    format_version: int = CHECKPOINT_FORMAT_VERSION

    def __post_init__(self) -> None:
        object.__setattr__(self, "context", _frozen(self.context))
        object.__setattr__(self, "node_outcomes", _frozen(self.node_outcomes))
        object.__setattr__(self, "node_visits", _frozen(self.node_visits))
        object.__setattr__(self, "loop_counters", _frozen(self.loop_counters))

    @property
    def finished(self) -> bool:
        return self.status is RunStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "completed_nodes": list(self.completed_nodes),
            "context": dict(self.context),
            "node_outcomes": {node_id: outcome.to_dict() for node_id, outcome in self.node_outcomes.items()},
            "status": self.status.value,
            "current_node": self.current_node,
            "next_node": self.next_node,
            "node_visits": dict(self.node_visits),
            "loop_counters": dict(self.loop_counters),
            "restart_count": self.restart_count,
            "graph_hash": self.graph_hash,
            "entry_fidelity": self.entry_fidelity,
            "format_version": self.format_version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Checkpoint:
        """Rebuild a checkpoint from its JSON form.

        Only ``completed_nodes``, ``context`` and ``node_outcomes`` are
        required; everything else defaults so that checkpoints produced
        by other tools remain loadable.

        Raises:
            KeyError: If a required key is missing.
            ValueError: If a status value is unknown.
        """
        return cls(
            timestamp=str(data.get("timestamp") or datetime.now(UTC).isoformat()),
            completed_nodes=tuple(str(n) for n in data["completed_nodes"]),
            context={str(k): context_value(v) for k, v in data["context"].items()},
            node_outcomes={str(k): NodeOutcome.from_dict(v) for k, v in data["node_outcomes"].items()},
            status=RunStatus(data.get("status", RunStatus.RUNNING.value)),
            current_node=data.get("current_node"),
            next_node=data.get("next_node"),
            node_visits={str(k): int(v) for k, v in (data.get("node_visits") or {}).items()},
            loop_counters={str(k): int(v) for k, v in (data.get("loop_counters") or {}).items()},
            restart_count=int(data.get("restart_count", 0)),
            graph_hash=data.get("graph_hash"),
            entry_fidelity=data.get("entry_fidelity"),
            format_version=int(data.get("format_version", CHECKPOINT_FORMAT_VERSION)),
        )


@dataclass(frozen=True, slots=True)
class Manifest:
    """Run-level metadata written once when a fresh run starts."""

    name: str
    goal: str
    start_time: str
    classification: PipelineClass
    graph_hash: str
    simulate: bool = False
    engine_version: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "goal": self.goal,
            "start_time": self.start_time,
            "classification": self.classification.value,
            "graph_hash": self.graph_hash,
            "simulate": self.simulate,
            "engine_version": self.engine_version,
        }


@dataclass(frozen=True)
class ResumeCheck:
    """Whether a logs directory can be resumed against a graph, and why not."""

    can_resume: bool
    reason: str | None = None

    def __post_init__(self) -> None:
        if self.can_resume and self.reason is not None:
            raise ValueError("can_resume=True should not have a reason")
        if not self.can_resume and self.reason is None:
            raise ValueError("can_resume=False must have a reason explaining why")


@dataclass(frozen=True)
class ResumePoint:
    """Where a resumed run continues.

    Attributes:
        checkpoint: Loaded checkpoint state.
        node_id: Node to execute next, None when the run already finished.
        skip_completed: Walk from start, skipping nodes already completed
            successfully (used when the checkpoint has no next_node).
    """

    checkpoint: Checkpoint
    node_id: str | None
    skip_completed: bool = False
