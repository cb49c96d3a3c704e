# src/attractor/core/dag/models.py
"""Typed pipeline model produced by the parser.

Leaf module for the dag package: nodes, edges and the graph container
are frozen after parsing. Raw attributes are kept alongside typed
accessors so handlers can read role-specific extras.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from attractor.contracts import FidelityMode, JoinPolicy, NodeKind, QuestionType
from attractor.core.dag.conditions import Condition

# Shape is the primary role marker; an explicit ``type`` attribute wins.
SHAPE_TO_KIND: Mapping[str, NodeKind] = MappingProxyType(
    {
        "Mdiamond": NodeKind.START,
        "Msquare": NodeKind.EXIT,
        "box": NodeKind.LLM,
        "parallelogram": NodeKind.TOOL,
        "hexagon": NodeKind.HUMAN_GATE,
        "octagon": NodeKind.GOAL_GATE,
        "house": NodeKind.MANAGER,
        "diamond": NodeKind.CONDITIONAL,
        "component": NodeKind.PARALLEL,
        "tripleoctagon": NodeKind.FAN_IN,
    }
)

TYPE_TO_KIND: Mapping[str, NodeKind] = MappingProxyType(
    {
        "start": NodeKind.START,
        "exit": NodeKind.EXIT,
        "codergen": NodeKind.LLM,
        "llm": NodeKind.LLM,
        "tool": NodeKind.TOOL,
        "wait.human": NodeKind.HUMAN_GATE,
        "human_gate": NodeKind.HUMAN_GATE,
        "goal_gate": NodeKind.GOAL_GATE,
        "stack.manager_loop": NodeKind.MANAGER,
        "manager": NodeKind.MANAGER,
        "conditional": NodeKind.CONDITIONAL,
        "parallel": NodeKind.PARALLEL,
        "parallel.fan_in": NodeKind.FAN_IN,
        "fan_in": NodeKind.FAN_IN,
    }
)

DEFAULT_SHAPE = "box"
NODE_ID_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"


@dataclass(frozen=True, slots=True)
class FidelityPolicy:
    """Lossy projection applied to context values crossing an edge.

    ``limit`` of None means "use the configured default".
    """

    mode: FidelityMode
    limit: int | None = None

    def apply(self, value: str, default_limit: int) -> str:
        if self.mode is FidelityMode.FULL:
            return value
        limit = self.limit if self.limit is not None else default_limit
        return value[:limit]

    def __str__(self) -> str:
        """Attribute form (``full``, ``truncate`` or ``truncate:N``), as read by parse_fidelity."""
        return self.mode.value if self.limit is None else f"{self.mode.value}:{self.limit}"


@dataclass(frozen=True, slots=True)
class LLMSpec:
    prompt: str
    llm_model: str | None = None
    llm_provider: str | None = None
    reasoning_effort: str | None = None


@dataclass(frozen=True, slots=True)
class ToolSpec:
    command: str
    tool_name: str = "shell"
    prompt: str = ""


@dataclass(frozen=True, slots=True)
class HumanGateSpec:
    prompt: str
    question_type: QuestionType = QuestionType.CHOICE
    options: tuple[str, ...] = ()
    default: str | None = None


@dataclass(frozen=True, slots=True)
class GoalGateSpec:
    goal: str | None = None
    gates: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ManagerSpec:
    max_cycles: int | None = None
    stop_key: str = "manager.stop"
    command: str | None = None
    poll_interval_seconds: float = 0.0


@dataclass(frozen=True, slots=True)
class FanInSpec:
    join_policy: JoinPolicy = JoinPolicy.WAIT_ALL


type NodeSpec = LLMSpec | ToolSpec | HumanGateSpec | GoalGateSpec | ManagerSpec | FanInSpec | None


@dataclass(frozen=True, slots=True)
class Node:
    """A pipeline stage.

    Attributes:
        id: Unique node identifier.
        kind: Execution role.
        shape: DOT shape the role was derived from (after defaults).
        attrs: Raw attribute mapping, including defaults.
        spec: Role-specific payload, None for structural roles.
        classes: Stylesheet classes (``class`` attribute plus subgraph).
        timeout_seconds: Per-attempt timeout, None for unbounded.
        max_retries: Retries after the first attempt.
        max_visits: Visit bound, None for unbounded.
        auto_status: Tool nodes record a synthesized success note.
        goal_gate: Node's outcome must be satisfying before exit.
        line: Source line of the declaration.
    """

    id: str
    kind: NodeKind
    shape: str
    attrs: Mapping[str, str]
    spec: NodeSpec = None
    classes: tuple[str, ...] = ()
    timeout_seconds: float | None = None
    max_retries: int = 0
    max_visits: int | None = None
    auto_status: bool = False
    goal_gate: bool = False
    line: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.attrs, MappingProxyType):
            object.__setattr__(self, "attrs", MappingProxyType(dict(self.attrs)))

    @property
    def label(self) -> str:
        return self.attrs.get("label") or self.id


@dataclass(frozen=True, slots=True)
class Edge:
    source: str
    target: str
    label: str = ""
    condition: Condition | None = None
    fidelity: FidelityPolicy | None = None
    loop_restart: bool = False
    weight: int = 0
    attrs: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    line: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.attrs, MappingProxyType):
            object.__setattr__(self, "attrs", MappingProxyType(dict(self.attrs)))

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None and not self.condition.is_empty

    @property
    def branch_name(self) -> str:
        """Name of the parallel branch this edge starts."""
        return self.label or self.target


@dataclass(frozen=True, slots=True)
class PipelineGraph:
    """Parsed pipeline: named graph with ordered nodes and edges.

    Declaration order of nodes and edges is preserved; edge selection
    and parallel branch order depend on it.
    """

    name: str
    attrs: Mapping[str, str]
    nodes: Mapping[str, Node]
    edges: tuple[Edge, ...]
    default_fidelity: FidelityPolicy | None = None
    _outgoing: Mapping[str, tuple[Edge, ...]] = field(init=False, repr=False, compare=False)
    _incoming: Mapping[str, tuple[Edge, ...]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attrs", MappingProxyType(dict(self.attrs)))
        object.__setattr__(self, "nodes", MappingProxyType(dict(self.nodes)))
        outgoing: dict[str, list[Edge]] = {}
        incoming: dict[str, list[Edge]] = {}
        for edge in self.edges:
            outgoing.setdefault(edge.source, []).append(edge)
            incoming.setdefault(edge.target, []).append(edge)
        # Stable sort keeps declaration order among equal weights.
        object.__setattr__(
            self,
            "_outgoing",
            MappingProxyType({k: tuple(sorted(v, key=lambda e: -e.weight)) for k, v in outgoing.items()}),
        )
        object.__setattr__(self, "_incoming", MappingProxyType({k: tuple(v) for k, v in incoming.items()}))

    @property
    def goal(self) -> str:
        return self.attrs.get("goal", "")

    def node(self, node_id: str) -> Node:
        """Get a node by id.

        Raises:
            KeyError: If the node is not declared.
        """
        return self.nodes[node_id]

    def outgoing(self, node_id: str) -> tuple[Edge, ...]:
        return self._outgoing.get(node_id, ())

    def incoming(self, node_id: str) -> tuple[Edge, ...]:
        return self._incoming.get(node_id, ())

    def nodes_of_kind(self, kind: NodeKind) -> list[Node]:
        return [node for node in self.nodes.values() if node.kind is kind]

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes.values())

    @property
    def start_node(self) -> Node:
        """The unique start node. Only meaningful after validation."""
        starts = self.nodes_of_kind(NodeKind.START)
        if len(starts) != 1:
            raise KeyError(f"expected exactly one start node, found {len(starts)}")
        return starts[0]

    @property
    def exit_node(self) -> Node:
        exits = self.nodes_of_kind(NodeKind.EXIT)
        if len(exits) != 1:
            raise KeyError(f"expected exactly one exit node, found {len(exits)}")
        return exits[0]


@dataclass(frozen=True, slots=True)
class ValidationWarning:
    """Non-fatal finding that does not block execution."""

    code: str
    message: str
    node_ids: tuple[str, ...] = ()
