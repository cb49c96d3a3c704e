# src/attractor/core/dag/graph.py
"""networkx views over a PipelineGraph for structural queries."""

from __future__ import annotations

import networkx as nx

from attractor.contracts import NodeKind
from attractor.core.dag.models import PipelineGraph


def to_networkx(graph: PipelineGraph) -> nx.DiGraph:
    """Build a DiGraph of declared nodes and edges between them.

    Edges pointing at undeclared nodes are dropped; the validator reports
    them separately.
    """
    g: nx.DiGraph = nx.DiGraph()
    for node in graph:
        g.add_node(node.id, kind=node.kind)
    for edge in graph.edges:
        if edge.source in graph.nodes and edge.target in graph.nodes:
            g.add_edge(edge.source, edge.target)
    return g


def unreachable_from(graph: PipelineGraph, source: str) -> list[str]:
    """Nodes not reachable from ``source``, in declaration order."""
    g = to_networkx(graph)
    reachable = nx.descendants(g, source) | {source}
    return [node_id for node_id in graph.nodes if node_id not in reachable]


def cannot_reach(graph: PipelineGraph, target: str) -> list[str]:
    """Nodes with no path to ``target``, in declaration order."""
    g = to_networkx(graph)
    ancestors = nx.ancestors(g, target) | {target}
    return [node_id for node_id in graph.nodes if node_id not in ancestors]


def nearest_fan_in(graph: PipelineGraph, start: str) -> str | None:
    """Closest fan-in node reachable from ``start`` (inclusive).

    Ties are broken by declaration order so the answer is stable.
    """
    g = to_networkx(graph)
    if start not in g:
        return None
    distances = nx.single_source_shortest_path_length(g, start)
    candidates = [
        (distances[node.id], index, node.id)
        for index, node in enumerate(graph)
        if node.kind is NodeKind.FAN_IN and node.id in distances
    ]
    if not candidates:
        return None
    return min(candidates)[2]
