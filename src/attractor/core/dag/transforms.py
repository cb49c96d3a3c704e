# src/attractor/core/dag/transforms.py
"""Graph transforms applied between parsing and validation.

- ``$goal`` in node prompts is replaced with the graph ``goal``.
- ``model_stylesheet`` rules assign LLM settings to nodes that do not
  set them explicitly.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from dataclasses import dataclass

from attractor.contracts import ParseError
from attractor.core.dag.models import HumanGateSpec, LLMSpec, Node, PipelineGraph, ToolSpec

STYLESHEET_PROPERTIES: tuple[str, ...] = ("llm_model", "llm_provider", "reasoning_effort")

_RULE_PATTERN = re.compile(r"([^{}]+)\{([^{}]*)\}")
_SELECTOR_PATTERN = re.compile(r"^(\*|#[A-Za-z_][A-Za-z0-9_]*|\.[A-Za-z0-9_-]+|[A-Za-z]+)$")


@dataclass(frozen=True, slots=True)
class StylesheetRule:
    selector: str
    properties: Mapping[str, str]
    order: int

    @property
    def specificity(self) -> int:
        if self.selector == "*":
            return 0
        if self.selector.startswith("#"):
            return 3
        if self.selector.startswith("."):
            return 2
        return 1

    def matches(self, node: Node) -> bool:
        if self.selector == "*":
            return True
        if self.selector.startswith("#"):
            return node.id == self.selector[1:]
        if self.selector.startswith("."):
            return self.selector[1:] in node.classes
        return node.shape == self.selector


def parse_stylesheet(source: str) -> list[StylesheetRule]:
    """Parse ``selector { prop: value; ... }`` rules.

    Raises:
        ParseError: On unknown selectors, properties, or leftover text.
    """
    rules: list[StylesheetRule] = []
    consumed = 0
    for match in _RULE_PATTERN.finditer(source):
        gap = source[consumed : match.start()]
        if gap.strip():
            raise ParseError(f"model_stylesheet: unexpected text {gap.strip()!r}")
        consumed = match.end()

        selectors = [s.strip() for s in match.group(1).split(",") if s.strip()]
        properties: dict[str, str] = {}
        for declaration in match.group(2).split(";"):
            if not declaration.strip():
                continue
            key, sep, value = declaration.partition(":")
            key, value = key.strip(), value.strip()
            if not sep or not key or not value:
                raise ParseError(f"model_stylesheet: malformed declaration {declaration.strip()!r}")
            if key not in STYLESHEET_PROPERTIES:
                raise ParseError(f"model_stylesheet: unsupported property {key!r}")
            properties[key] = value
        for selector in selectors:
            if not _SELECTOR_PATTERN.match(selector):
                raise ParseError(f"model_stylesheet: unsupported selector {selector!r}")
            rules.append(StylesheetRule(selector=selector, properties=properties, order=len(rules)))

    if source[consumed:].strip():
        raise ParseError(f"model_stylesheet: unexpected text {source[consumed:].strip()!r}")
    return rules


def resolve_style(node: Node, rules: list[StylesheetRule]) -> dict[str, str]:
    """Properties for a node; higher specificity, then later rules, win."""
    resolved: dict[str, str] = {}
    for rule in sorted(rules, key=lambda r: (r.specificity, r.order)):
        if rule.matches(node):
            resolved.update(rule.properties)
    return resolved


def _expand_goal(node: Node, goal: str) -> Node:
    spec = node.spec
    if not isinstance(spec, LLMSpec | ToolSpec | HumanGateSpec) or "$goal" not in spec.prompt:
        return node
    prompt = spec.prompt.replace("$goal", goal)
    return dataclasses.replace(
        node,
        spec=dataclasses.replace(spec, prompt=prompt),
        attrs={**node.attrs, "prompt": prompt},
    )


def _apply_style(node: Node, rules: list[StylesheetRule]) -> Node:
    if not isinstance(node.spec, LLMSpec):
        return node
    styled = {key: value for key, value in resolve_style(node, rules).items() if key not in node.attrs}
    if not styled:
        return node
    return dataclasses.replace(
        node,
        spec=dataclasses.replace(node.spec, **styled),
        attrs={**node.attrs, **styled},
    )


def apply_transforms(graph: PipelineGraph) -> PipelineGraph:
    """Apply goal expansion and the model stylesheet.

    Returns:
        A new graph; the input is unchanged.

    Raises:
        ParseError: If the stylesheet is malformed.
    """
    nodes = dict(graph.nodes)
    if graph.goal:
        nodes = {node_id: _expand_goal(node, graph.goal) for node_id, node in nodes.items()}

    stylesheet = graph.attrs.get("model_stylesheet", "")
    if stylesheet.strip():
        rules = parse_stylesheet(stylesheet)
        nodes = {node_id: _apply_style(node, rules) for node_id, node in nodes.items()}

    return dataclasses.replace(graph, nodes=nodes)
