# src/attractor/engine/routing.py
"""Edge selection after a node completes."""

from __future__ import annotations

from collections.abc import Mapping

from attractor.contracts import StageResult, StageStatus
from attractor.core.dag.models import Edge, PipelineGraph
from attractor.core.dag.conditions import ConditionEnv


def _normalize_label(label: str) -> str:
    return label.strip().lower()


def select_edge(graph: PipelineGraph, node_id: str, result: StageResult, context: Mapping[str, str]) -> Edge | None:
    """Pick the outgoing edge to follow.

    Edges are considered in weight-then-declaration order. A preferred
    label from the result (human gates) is matched first. A failed result
    only follows an edge whose condition explicitly matched.

    Args:
        graph: Pipeline being executed.
        node_id: Node that just completed.
        result: Its final stage result.
        context: Run context after the result's updates were applied.

    Returns:
        The selected edge, or None when no edge is eligible.
    """
    env = ConditionEnv(context=context, outcome=result.status, preferred_label=result.preferred_label)
    edges = graph.outgoing(node_id)
    failed = result.status is StageStatus.FAIL

    def eligible(edge: Edge) -> bool:
        if edge.is_conditional:
            assert edge.condition is not None
            return edge.condition.evaluate(env)
        return not failed

    if result.preferred_label:
        wanted = _normalize_label(result.preferred_label)
        for edge in edges:
            if edge.label and _normalize_label(edge.label) == wanted and eligible(edge):
                return edge

    for edge in edges:
        if eligible(edge):
            return edge
    return None
