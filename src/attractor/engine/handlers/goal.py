# src/attractor/engine/handlers/goal.py
"""Goal gates: block the run unless the gated stages were satisfied."""

from __future__ import annotations

from collections.abc import Mapping

from attractor.contracts import GateUnsatisfiedError, NodeOutcome, StageResult
from attractor.core.dag.models import GoalGateSpec, PipelineGraph
from attractor.engine.handlers.base import StageRequest


def gated_nodes(spec: GoalGateSpec, graph: PipelineGraph, outcomes: Mapping[str, NodeOutcome], context: Mapping[str, str]) -> list[str]:
    """Nodes a goal gate evaluates.

    The ``gates`` attribute wins; otherwise every executed
    ``goal_gate=true`` node; otherwise the last completed stage.
    """
    if spec.gates:
        return list(spec.gates)
    flagged = [node.id for node in graph if node.goal_gate and node.id in outcomes]
    if flagged:
        return flagged
    last = context.get("last_stage") or next(reversed(outcomes), None)
    return [last] if last else []


def unsatisfied(node_ids: list[str], outcomes: Mapping[str, NodeOutcome]) -> list[str]:
    """Describe each gated node without a satisfying outcome."""
    problems: list[str] = []
    for node_id in node_ids:
        outcome = outcomes.get(node_id)
        if outcome is None:
            problems.append(f"'{node_id}' has not run")
        elif not outcome.status.satisfied:
            problems.append(f"'{node_id}' is {outcome.status.value}")
    return problems


class GoalGateHandler:
    def execute(self, request: StageRequest) -> StageResult:
        node = request.node
        spec = node.spec if isinstance(node.spec, GoalGateSpec) else GoalGateSpec()
        goal = spec.goal or request.graph.goal or node.label

        checked = gated_nodes(spec, request.graph, request.outcomes, request.context)
        problems = unsatisfied(checked, request.outcomes)
        if problems:
            raise GateUnsatisfiedError(
                f"goal gate '{node.id}' unsatisfied for goal {goal!r}: {', '.join(problems)}",
                node_id=node.id,
            )
        checked_text = ", ".join(checked) if checked else "nothing to check"
        return StageResult.success(
            f"goal satisfied ({checked_text})",
            context_updates={"goal_gate.satisfied": "true"},
        )
