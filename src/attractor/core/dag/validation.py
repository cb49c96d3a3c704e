# src/attractor/core/dag/validation.py
"""Structural validation and classification of parsed pipelines.

Rules run as a fixed sequence of categories. Validation stops at the first
category that has violations and reports every violation of that category,
so operators fix one class of problem at a time. The same input always
yields the same verdict and messages.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from attractor.contracts import GraphValidationError, NodeKind, PipelineClass
from attractor.core.dag.graph import cannot_reach, nearest_fan_in, unreachable_from
from attractor.core.dag.models import PipelineGraph, ValidationWarning
from attractor.core.logging import get_logger

logger = get_logger(__name__)

_LLM_KINDS = frozenset({NodeKind.LLM, NodeKind.MANAGER})


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """Outcome of a successful validation."""

    classification: PipelineClass
    warnings: tuple[ValidationWarning, ...] = ()


def _check_start(graph: PipelineGraph) -> list[str]:
    starts = [node.id for node in graph.nodes_of_kind(NodeKind.START)]
    if not starts:
        return ["missing start node (shape=Mdiamond)"]
    if len(starts) > 1:
        return [f"expected exactly one start node (shape=Mdiamond), found {len(starts)}: {', '.join(starts)}"]
    return []


def _check_start_incoming(graph: PipelineGraph) -> list[str]:
    start = graph.start_node
    sources = [edge.source for edge in graph.incoming(start.id)]
    if sources:
        return [f"start node '{start.id}' has incoming edges from: {', '.join(sources)}"]
    return []


def _check_exit(graph: PipelineGraph) -> list[str]:
    exits = [node.id for node in graph.nodes_of_kind(NodeKind.EXIT)]
    if not exits:
        return ["missing exit node (shape=Msquare)"]
    if len(exits) > 1:
        return [f"expected exactly one exit node (shape=Msquare), found {len(exits)}: {', '.join(exits)}"]
    return []


def _check_edge_endpoints(graph: PipelineGraph) -> list[str]:
    violations = []
    for edge in graph.edges:
        for endpoint in (edge.source, edge.target):
            if endpoint not in graph.nodes:
                violations.append(
                    f"edge {edge.source} -> {edge.target} (line {edge.line}) references undeclared node '{endpoint}'"
                )
    return violations


def _check_orphans(graph: PipelineGraph) -> list[str]:
    start = graph.start_node.id
    return [
        f"orphan node '{node_id}' is unreachable from start node '{start}'"
        for node_id in unreachable_from(graph, start)
    ]


def _check_reach_exit(graph: PipelineGraph) -> list[str]:
    exit_id = graph.exit_node.id
    return [
        f"node '{node_id}' cannot reach the exit node '{exit_id}' (no path to a terminal node)"
        for node_id in cannot_reach(graph, exit_id)
    ]


# Order matters: later rules assume the earlier ones hold.
RULES: tuple[tuple[str, Callable[[PipelineGraph], list[str]]], ...] = (
    ("start_node", _check_start),
    ("start_incoming", _check_start_incoming),
    ("exit_node", _check_exit),
    ("edge_endpoints", _check_edge_endpoints),
    ("orphan", _check_orphans),
    ("reach_exit", _check_reach_exit),
)


def classify(graph: PipelineGraph) -> PipelineClass:
    """PLANNING without tool nodes, HYBRID with tools and LLM stages, else EXECUTION."""
    kinds = {node.kind for node in graph}
    if NodeKind.TOOL not in kinds:
        return PipelineClass.PLANNING
    if kinds & _LLM_KINDS:
        return PipelineClass.HYBRID
    return PipelineClass.EXECUTION


def _collect_warnings(graph: PipelineGraph, classification: PipelineClass) -> list[ValidationWarning]:
    warnings: list[ValidationWarning] = []
    if classification is PipelineClass.PLANNING:
        warnings.append(
            ValidationWarning(
                code="llm_only",
                message="pipeline has no tool nodes; every stage is LLM-driven (PLANNING)",
            )
        )
    for node in graph.nodes_of_kind(NodeKind.PARALLEL):
        branches = graph.outgoing(node.id)
        if not branches:
            warnings.append(
                ValidationWarning(code="parallel_branches", message=f"parallel node '{node.id}' has no branches", node_ids=(node.id,))
            )
            continue
        fan_ins = {nearest_fan_in(graph, edge.target) for edge in branches}
        if None in fan_ins or len(fan_ins) != 1:
            warnings.append(
                ValidationWarning(
                    code="parallel_fan_in",
                    message=f"branches of parallel node '{node.id}' do not converge on a single fan-in node",
                    node_ids=(node.id,),
                )
            )
    return warnings


def validate_graph(graph: PipelineGraph) -> ValidationReport:
    """Validate structure and classify the pipeline.

    Args:
        graph: Parsed (and transformed) pipeline.

    Returns:
        ValidationReport with classification and advisory warnings.

    Raises:
        GraphValidationError: For the first rule category with violations.
    """
    for rule, check in RULES:
        violations = check(graph)
        if violations:
            logger.debug("Graph validation failed", rule=rule, violations=len(violations))
            raise GraphValidationError(rule, violations)

    classification = classify(graph)
    return ValidationReport(
        classification=classification,
        warnings=tuple(_collect_warnings(graph, classification)),
    )
