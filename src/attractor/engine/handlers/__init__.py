# src/attractor/engine/handlers/__init__.py
"""Node handlers, one per node kind, dispatched through a registry."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from types import MappingProxyType

from attractor.contracts import NodeKind
from attractor.engine.handlers.base import HandlerServices, NodeHandler, StageRequest
from attractor.engine.handlers.goal import GoalGateHandler
from attractor.engine.handlers.human import HumanGateHandler
from attractor.engine.handlers.llm import LLMHandler
from attractor.engine.handlers.manager import ManagerHandler
from attractor.engine.handlers.parallel import ParallelHandler
from attractor.engine.handlers.structural import FanInHandler, PassThroughHandler
from attractor.engine.handlers.tool import ShellCommandRunner, ToolHandler
from attractor.engine.parallel import BranchResult, ParallelCoordinator

__all__ = [
    "HandlerServices",
    "NodeHandler",
    "StageRequest",
    "build_handler_registry",
]


def build_handler_registry(
    services: HandlerServices,
    coordinator: ParallelCoordinator,
    record_branches: Callable[[Sequence[BranchResult]], None],
) -> Mapping[NodeKind, NodeHandler]:
    """Map every node kind to its handler."""
    passthrough = PassThroughHandler()
    registry: dict[NodeKind, NodeHandler] = {
        NodeKind.START: passthrough,
        NodeKind.EXIT: passthrough,
        NodeKind.CONDITIONAL: passthrough,
        NodeKind.LLM: LLMHandler(services),
        NodeKind.TOOL: ToolHandler(services),
        NodeKind.HUMAN_GATE: HumanGateHandler(services),
        NodeKind.GOAL_GATE: GoalGateHandler(),
        NodeKind.MANAGER: ManagerHandler(services, ShellCommandRunner(services)),
        NodeKind.PARALLEL: ParallelHandler(coordinator, record_branches),
        NodeKind.FAN_IN: FanInHandler(),
    }
    missing = set(NodeKind) - set(registry)
    assert not missing, f"no handler for node kinds: {sorted(missing)}"
    return MappingProxyType(registry)
