# src/attractor/engine/handlers/base.py
"""Handler protocol and the per-attempt request passed to handlers."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from attractor.contracts import NodeOutcome, StageResult

if TYPE_CHECKING:
    from attractor.core.config import AttractorSettings
    from attractor.core.dag.models import Node, PipelineGraph
    from attractor.engine.artifacts import StageArtifactSink
    from attractor.engine.interviewer import Interviewer
    from attractor.plugins.llm.base import LLMBackend
    from attractor.plugins.manager import PluginManager


@dataclass(frozen=True)
class StageRequest:
    """Everything one handler attempt may look at.

    Attributes:
        node: Node being executed.
        graph: The pipeline.
        context: Context view for this node (edge fidelity already applied).
        attempt: 1-based attempt number.
        visit: 1-based visit number of this node in the run.
        artifacts: Stage directory writer.
        outcomes: Latest recorded outcome per node.
        loop_counters: Persistent per-node counters (manager cycles).
    """

    node: Node
    graph: PipelineGraph
    context: Mapping[str, str]
    attempt: int
    visit: int
    artifacts: StageArtifactSink
    outcomes: Mapping[str, NodeOutcome] = field(default_factory=dict)
    loop_counters: MutableMapping[str, int] = field(default_factory=dict)

    @property
    def logs_root(self) -> Path:
        return self.artifacts.logs_root


@dataclass(frozen=True)
class HandlerServices:
    """Collaborators shared by all handlers of a run."""

    settings: AttractorSettings
    plugins: PluginManager
    llm_backend: LLMBackend
    interviewer: Interviewer
    sleep: Callable[[float], None] = time.sleep


class NodeHandler(Protocol):
    """Executes one attempt of a node.

    Returning a FAIL result lets the executor retry the node; raising an
    ExecutionError aborts the run immediately.
    """

    def execute(self, request: StageRequest) -> StageResult: ...
