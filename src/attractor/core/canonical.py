# src/attractor/core/canonical.py
"""Canonical JSON serialization for deterministic hashing.

Serialization follows RFC 8785/JCS (rfc8785 package) so that hashes are
stable across Python versions and dict orderings.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any

import rfc8785

if TYPE_CHECKING:
    from attractor.core.dag.models import PipelineGraph

# Stored with checkpoints so future hash changes can be detected.
CANONICAL_VERSION = "sha256-rfc8785-v1"


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON (no whitespace, sorted keys).

    Raises:
        TypeError: If data contains types that cannot be serialized
    """
    result: bytes = rfc8785.dumps(obj)
    return result.decode("utf-8")


def stable_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON of ``obj``."""
    return hashlib.sha256(canonical_json(obj).encode("utf-8")).hexdigest()


def compute_graph_hash(graph: PipelineGraph) -> str:
    """Hash of the routing topology, used to gate checkpoint resume.

    Covers node ids and roles plus every edge with the attributes that
    affect traversal. Prompt and command text are not part of the
    hash; editing them keeps an existing checkpoint resumable.

    Args:
        graph: Parsed pipeline

    Returns:
        SHA-256 hex digest.
    """
    topology = {
        "nodes": sorted(({"id": node.id, "kind": node.kind.value} for node in graph), key=lambda n: n["id"]),
        # Edge order is part of routing semantics, so it is not sorted.
        "edges": [
            {
                "from": edge.source,
                "to": edge.target,
                "label": edge.label,
                "condition": str(edge.condition) if edge.condition is not None else "",
                "loop_restart": edge.loop_restart,
                "weight": edge.weight,
            }
            for edge in graph.edges
        ],
    }
    return stable_hash(topology)
