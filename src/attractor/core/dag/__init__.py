"""Pipeline graph package: parsing, transforms and validation.

Public API:
    load_graph / load_graph_file: text or file -> transformed PipelineGraph
    validate_graph: structural rules + classification
"""

from __future__ import annotations

from pathlib import Path

from attractor.contracts import ParseError
from attractor.core.dag.models import (
    Edge,
    FidelityPolicy,
    Node,
    PipelineGraph,
    ValidationWarning,
)
from attractor.core.dag.parser import parse_dot
from attractor.core.dag.transforms import apply_transforms
from attractor.core.dag.validation import ValidationReport, classify, validate_graph


def load_graph(text: str) -> PipelineGraph:
    """Parse DOT text and apply graph transforms.

    Raises:
        ParseError: If the text or its stylesheet is malformed.
    """
    return apply_transforms(parse_dot(text))


def load_graph_file(path: Path) -> PipelineGraph:
    """Read and load a DOT file.

    Raises:
        ParseError: If the file cannot be read or parsed.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ParseError(f"cannot read graph file {path}: {exc.strerror or exc}") from exc
    except UnicodeDecodeError as exc:
        raise ParseError(f"graph file {path} is not valid UTF-8") from exc
    return load_graph(text)


__all__ = [
    "Edge",
    "FidelityPolicy",
    "Node",
    "PipelineGraph",
    "ValidationReport",
    "ValidationWarning",
    "classify",
    "load_graph",
    "load_graph_file",
    "parse_dot",
    "validate_graph",
]
