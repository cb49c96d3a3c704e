# src/attractor/core/dag/parser.py
"""Parser for the supported DOT subset.

Two phases, mirroring how the engine treats graph text as untrusted
input:

1. Syntax: tokenize and parse statements into raw node/edge records,
   resolving ``node [..]``/``edge [..]`` defaults and subgraph scopes.
2. Typing: coerce raw attribute strings into the frozen pipeline model
   (roles, durations, retry counts, conditions, fidelity policies).

Anything outside the subset is rejected with a ParseError that carries
the offending line number.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeVar

from attractor.contracts import ConditionSyntaxError, FidelityMode, JoinPolicy, NodeKind, ParseError, QuestionType
from attractor.core.dag.attributes import class_name_from_label, parse_bool, parse_duration, parse_int, parse_list
from attractor.core.dag.models import (
    DEFAULT_SHAPE,
    NODE_ID_PATTERN,
    SHAPE_TO_KIND,
    TYPE_TO_KIND,
    Edge,
    FanInSpec,
    FidelityPolicy,
    GoalGateSpec,
    HumanGateSpec,
    LLMSpec,
    ManagerSpec,
    Node,
    NodeSpec,
    PipelineGraph,
    ToolSpec,
)
from attractor.core.dag.conditions import parse_condition

T = TypeVar("T")

_NODE_ID_RE = re.compile(NODE_ID_PATTERN)
_ESCAPES = {"n": "\n", "t": "\t", '"': '"', "\\": "\\"}
_KEYWORDS = frozenset({"strict", "graph", "digraph", "node", "edge", "subgraph"})


class TokenKind(StrEnum):
    ID = "identifier"
    STRING = "string"
    ARROW = "'->'"
    UNDIRECTED = "'--'"
    LBRACKET = "'['"
    RBRACKET = "']'"
    LBRACE = "'{'"
    RBRACE = "'}'"
    EQUALS = "'='"
    COMMA = "','"
    SEMI = "';'"
    EOF = "end of input"


_PUNCTUATION: dict[str, TokenKind] = {
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    "=": TokenKind.EQUALS,
    ",": TokenKind.COMMA,
    ";": TokenKind.SEMI,
}


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    value: str
    line: int


def _is_bare_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_.:+-"


def tokenize(text: str) -> list[Token]:
    """Split DOT text into tokens, dropping comments outside strings.

    Raises:
        ParseError: On unterminated strings or comments, HTML labels,
            or characters outside the subset.
    """
    tokens: list[Token] = []
    i = 0
    line = 1
    line_start = True
    length = len(text)

    while i < length:
        ch = text[i]

        if ch == "\n":
            line += 1
            line_start = True
            i += 1
            continue
        if ch.isspace():
            i += 1
            continue

        if ch == "#" and line_start:
            while i < length and text[i] != "\n":
                i += 1
            continue
        line_start = False

        if text.startswith("//", i):
            while i < length and text[i] != "\n":
                i += 1
            continue
        if text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end < 0:
                raise ParseError("unterminated block comment", line=line)
            line += text.count("\n", i, end)
            i = end + 2
            continue

        if ch == '"':
            start_line = line
            i += 1
            chars: list[str] = []
            while True:
                if i >= length:
                    raise ParseError("unterminated string", line=start_line)
                c = text[i]
                if c == "\\" and i + 1 < length:
                    nxt = text[i + 1]
                    if nxt == "\n":
                        # Line continuation inside a quoted string.
                        line += 1
                    else:
                        chars.append(_ESCAPES.get(nxt, "\\" + nxt))
                    i += 2
                    continue
                if c == '"':
                    i += 1
                    break
                if c == "\n":
                    line += 1
                chars.append(c)
                i += 1
            tokens.append(Token(TokenKind.STRING, "".join(chars), start_line))
            continue

        if ch == "-" and i + 1 < length and text[i + 1] == ">":
            tokens.append(Token(TokenKind.ARROW, "->", line))
            i += 2
            continue
        if ch == "-" and i + 1 < length and text[i + 1] == "-":
            tokens.append(Token(TokenKind.UNDIRECTED, "--", line))
            i += 2
            continue
        if ch in _PUNCTUATION:
            tokens.append(Token(_PUNCTUATION[ch], ch, line))
            i += 1
            continue
        if ch == "<":
            raise ParseError("HTML-like labels are not supported", line=line)

        if _is_bare_char(ch):
            start = i
            while i < length and _is_bare_char(text[i]):
                if text[i] == "-" and i + 1 < length and text[i + 1] in "->":
                    break
                i += 1
            if i == start:
                raise ParseError(f"unexpected character {ch!r}", line=line)
            tokens.append(Token(TokenKind.ID, text[start:i], line))
            continue

        raise ParseError(f"unexpected character {ch!r}", line=line)

    tokens.append(Token(TokenKind.EOF, "", line))
    return tokens


@dataclass
class _RawNode:
    id: str
    attrs: dict[str, str]
    classes: list[str]
    line: int


@dataclass
class _RawEdge:
    source: str
    target: str
    attrs: dict[str, str]
    line: int


@dataclass
class _Scope:
    node_defaults: dict[str, str] = field(default_factory=dict)
    edge_defaults: dict[str, str] = field(default_factory=dict)
    attrs: dict[str, str] = field(default_factory=dict)
    members: list[str] = field(default_factory=list)


class _StatementParser:
    """Recursive-descent parser over the token stream."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0
        self.name = ""
        self.graph_attrs: dict[str, str] = {}
        self.nodes: dict[str, _RawNode] = {}
        self.edges: list[_RawEdge] = []

    def _peek(self, offset: int = 0) -> Token:
        index = min(self._pos + offset, len(self._tokens) - 1)
        return self._tokens[index]

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        if token.kind is not TokenKind.EOF:
            self._pos += 1
        return token

    def _expect(self, kind: TokenKind) -> Token:
        token = self._peek()
        if token.kind is not kind:
            found = repr(token.value) if token.value else token.kind.value
            raise ParseError(f"expected {kind.value}, found {found}", line=token.line)
        return self._advance()

    def _is_keyword(self, token: Token, word: str) -> bool:
        return token.kind is TokenKind.ID and token.value.lower() == word

    def parse(self) -> None:
        token = self._peek()
        if self._is_keyword(token, "strict"):
            self._advance()
            token = self._peek()
        if self._is_keyword(token, "graph"):
            raise ParseError("undirected graphs are not supported; use 'digraph'", line=token.line)
        if not self._is_keyword(token, "digraph"):
            raise ParseError("expected 'digraph'", line=token.line)
        self._advance()

        if self._peek().kind in (TokenKind.ID, TokenKind.STRING):
            self.name = self._advance().value
        self._expect(TokenKind.LBRACE)
        root = _Scope()
        self._parse_statements(root, is_root=True)
        self._expect(TokenKind.RBRACE)
        trailing = self._peek()
        if trailing.kind is not TokenKind.EOF:
            raise ParseError(f"unexpected content after graph body: {trailing.value!r}", line=trailing.line)

    def _parse_statements(self, scope: _Scope, *, is_root: bool) -> None:
        while True:
            token = self._peek()
            if token.kind is TokenKind.RBRACE:
                return
            if token.kind is TokenKind.EOF:
                raise ParseError("unterminated graph body: missing '}'", line=token.line)
            if token.kind is TokenKind.SEMI:
                self._advance()
                continue
            self._parse_statement(scope, is_root=is_root)
            if self._peek().kind is TokenKind.SEMI:
                self._advance()

    def _parse_statement(self, scope: _Scope, *, is_root: bool) -> None:
        token = self._peek()

        if token.kind is TokenKind.LBRACE or self._is_keyword(token, "subgraph"):
            self._parse_subgraph(scope)
            return

        if token.kind is TokenKind.ID and token.value.lower() in ("graph", "node", "edge"):
            if self._peek(1).kind is TokenKind.LBRACKET:
                self._advance()
                attrs = self._parse_attr_list()
                keyword = token.value.lower()
                if keyword == "graph":
                    (self.graph_attrs if is_root else scope.attrs).update(attrs)
                elif keyword == "node":
                    scope.node_defaults.update(attrs)
                else:
                    scope.edge_defaults.update(attrs)
                return

        if token.kind not in (TokenKind.ID, TokenKind.STRING):
            raise ParseError(f"unexpected {token.kind.value} {token.value!r}", line=token.line)

        if self._peek(1).kind is TokenKind.EQUALS:
            key = self._advance().value
            self._advance()
            value = self._parse_value()
            (self.graph_attrs if is_root else scope.attrs)[key] = value
            return

        first = self._parse_node_id()
        if self._peek().kind is TokenKind.UNDIRECTED:
            raise ParseError("undirected edges ('--') are not supported", line=self._peek().line)
        if self._peek().kind is TokenKind.ARROW:
            self._parse_edge_chain(first, token.line, scope)
            return

        attrs = self._parse_attr_list() if self._peek().kind is TokenKind.LBRACKET else None
        self._declare_node(first, attrs, token.line, scope, is_root=is_root)

    def _parse_edge_chain(self, first: str, line: int, scope: _Scope) -> None:
        chain = [first]
        while self._peek().kind is TokenKind.ARROW:
            self._advance()
            target_token = self._peek()
            if target_token.kind is TokenKind.LBRACE or self._is_keyword(target_token, "subgraph"):
                raise ParseError("subgraphs as edge endpoints are not supported", line=target_token.line)
            chain.append(self._parse_node_id())
        if self._peek().kind is TokenKind.UNDIRECTED:
            raise ParseError("undirected edges ('--') are not supported", line=self._peek().line)
        attrs = self._parse_attr_list() if self._peek().kind is TokenKind.LBRACKET else {}
        merged = {**scope.edge_defaults, **attrs}
        for source, target in zip(chain, chain[1:], strict=False):
            self.edges.append(_RawEdge(source=source, target=target, attrs=dict(merged), line=line))

    def _declare_node(
        self,
        node_id: str,
        attrs: dict[str, str] | None,
        line: int,
        scope: _Scope,
        *,
        is_root: bool,
    ) -> None:
        existing = self.nodes.get(node_id)
        if existing is not None:
            # A bare mention inside a subgraph only groups an existing node.
            if attrs is None and not is_root:
                scope.members.append(node_id)
                return
            raise ParseError(
                f"duplicate node id '{node_id}' (first declared on line {existing.line})",
                line=line,
            )
        merged = {**scope.node_defaults, **(attrs or {})}
        classes = list(parse_list(merged.get("class", "")))
        self.nodes[node_id] = _RawNode(id=node_id, attrs=merged, classes=classes, line=line)
        scope.members.append(node_id)

    def _parse_subgraph(self, parent: _Scope) -> None:
        if self._is_keyword(self._peek(), "subgraph"):
            self._advance()
            if self._peek().kind in (TokenKind.ID, TokenKind.STRING):
                self._advance()
        self._expect(TokenKind.LBRACE)
        scope = _Scope(
            node_defaults=dict(parent.node_defaults),
            edge_defaults=dict(parent.edge_defaults),
        )
        self._parse_statements(scope, is_root=False)
        self._expect(TokenKind.RBRACE)

        derived = scope.attrs.get("class") or class_name_from_label(scope.attrs.get("label", ""))
        if derived:
            for member in scope.members:
                classes = self.nodes[member].classes
                if derived not in classes:
                    classes.append(derived)
        parent.members.extend(scope.members)

    def _parse_node_id(self) -> str:
        token = self._peek()
        if token.kind not in (TokenKind.ID, TokenKind.STRING):
            raise ParseError(f"expected node id, found {token.kind.value}", line=token.line)
        if token.kind is TokenKind.ID and token.value.lower() in _KEYWORDS:
            raise ParseError(f"keyword '{token.value}' cannot be used as a node id", line=token.line)
        if not _NODE_ID_RE.match(token.value):
            raise ParseError(
                f"invalid node id {token.value!r}: must match [A-Za-z_][A-Za-z0-9_]*",
                line=token.line,
            )
        self._advance()
        return token.value

    def _parse_value(self) -> str:
        token = self._peek()
        if token.kind not in (TokenKind.ID, TokenKind.STRING):
            raise ParseError(f"expected attribute value, found {token.kind.value}", line=token.line)
        return self._advance().value

    def _parse_attr_list(self) -> dict[str, str]:
        attrs: dict[str, str] = {}
        while self._peek().kind is TokenKind.LBRACKET:
            self._advance()
            while self._peek().kind is not TokenKind.RBRACKET:
                key_token = self._peek()
                if key_token.kind not in (TokenKind.ID, TokenKind.STRING):
                    raise ParseError(
                        f"expected attribute name, found {key_token.kind.value}",
                        line=key_token.line,
                    )
                self._advance()
                self._expect(TokenKind.EQUALS)
                attrs[key_token.value] = self._parse_value()
                if self._peek().kind in (TokenKind.COMMA, TokenKind.SEMI):
                    self._advance()
            self._expect(TokenKind.RBRACKET)
        return attrs


def _coerce(subject: str, key: str, value: str, fn: Callable[[str], T], line: int) -> T:
    try:
        return fn(value)
    except ValueError as exc:
        raise ParseError(f"{subject}: malformed attribute {key}={value!r}: {exc}", line=line) from None


def parse_fidelity(value: str, limit: str | None = None) -> FidelityPolicy:
    """Parse ``full``, ``truncate`` or ``truncate:N`` (plus an optional limit).

    Raises:
        ValueError: If the mode or limit is malformed.
    """
    mode_text, _, inline_limit = value.strip().partition(":")
    try:
        mode = FidelityMode(mode_text.strip().lower())
    except ValueError:
        supported = ", ".join(m.value for m in FidelityMode)
        raise ValueError(f"unsupported fidelity mode {mode_text!r} (supported: {supported})") from None
    raw_limit = inline_limit or limit
    parsed_limit = parse_int(raw_limit, minimum=1) if raw_limit else None
    return FidelityPolicy(mode=mode, limit=parsed_limit)


def _resolve_kind(raw: _RawNode) -> tuple[NodeKind, str]:
    shape = raw.attrs.get("shape", DEFAULT_SHAPE)
    type_name = raw.attrs.get("type")
    if type_name:
        kind = TYPE_TO_KIND.get(type_name)
        if kind is None:
            raise ParseError(f"node '{raw.id}': unsupported type {type_name!r}", line=raw.line)
        return kind, shape
    kind = SHAPE_TO_KIND.get(shape)
    if kind is None:
        raise ParseError(f"node '{raw.id}': unsupported shape {shape!r}", line=raw.line)
    return kind, shape


def _build_spec(raw: _RawNode, kind: NodeKind) -> NodeSpec:
    attrs = raw.attrs
    subject = f"node '{raw.id}'"
    label = attrs.get("label") or raw.id

    if kind is NodeKind.LLM:
        return LLMSpec(
            prompt=attrs.get("prompt") or label,
            llm_model=attrs.get("llm_model"),
            llm_provider=attrs.get("llm_provider"),
            reasoning_effort=attrs.get("reasoning_effort"),
        )
    if kind is NodeKind.TOOL:
        command = attrs.get("tool_command") or attrs.get("command")
        if not command:
            raise ParseError(f"{subject}: tool nodes require a tool_command attribute", line=raw.line)
        return ToolSpec(
            command=command,
            tool_name=attrs.get("tool_name", "shell"),
            prompt=attrs.get("prompt") or label,
        )
    if kind is NodeKind.HUMAN_GATE:
        question_type = _coerce(subject, "question_type", attrs.get("question_type", "choice"), QuestionType, raw.line)
        return HumanGateSpec(
            prompt=attrs.get("prompt") or label,
            question_type=question_type,
            options=parse_list(attrs.get("options", ""), separator="|"),
            default=attrs.get("default"),
        )
    if kind is NodeKind.GOAL_GATE:
        return GoalGateSpec(goal=attrs.get("goal"), gates=parse_list(attrs.get("gates", "")))
    if kind is NodeKind.MANAGER:
        max_cycles = None
        if "max_cycles" in attrs:
            max_cycles = _coerce(subject, "max_cycles", attrs["max_cycles"], lambda v: parse_int(v, minimum=1), raw.line)
        poll_interval = 0.0
        if attrs.get("manager.poll_interval"):
            poll_interval = _coerce(subject, "manager.poll_interval", attrs["manager.poll_interval"], parse_duration, raw.line)
        return ManagerSpec(
            max_cycles=max_cycles,
            stop_key=attrs.get("stop_condition_key") or attrs.get("stop_key") or "manager.stop",
            command=attrs.get("tool_command") or attrs.get("command") or None,
            poll_interval_seconds=poll_interval,
        )
    if kind is NodeKind.FAN_IN:
        policy = _coerce(subject, "join_policy", attrs.get("join_policy", "wait_all"), JoinPolicy, raw.line)
        return FanInSpec(join_policy=policy)
    return None


def _build_node(raw: _RawNode, graph_attrs: dict[str, str]) -> Node:
    kind, shape = _resolve_kind(raw)
    attrs = raw.attrs
    subject = f"node '{raw.id}'"

    timeout = None
    if attrs.get("timeout"):
        timeout = _coerce(subject, "timeout", attrs["timeout"], parse_duration, raw.line)

    retries_text = attrs.get("max_retries") or graph_attrs.get("default_max_retry")
    max_retries = 0
    if retries_text:
        max_retries = _coerce(subject, "max_retries", retries_text, parse_int, raw.line)

    max_visits = None
    if attrs.get("max_visits"):
        max_visits = _coerce(subject, "max_visits", attrs["max_visits"], lambda v: parse_int(v, minimum=1), raw.line)

    return Node(
        id=raw.id,
        kind=kind,
        shape=shape,
        attrs=attrs,
        spec=_build_spec(raw, kind),
        classes=tuple(raw.classes),
        timeout_seconds=timeout,
        max_retries=max_retries,
        max_visits=max_visits,
        auto_status=_coerce(subject, "auto_status", attrs.get("auto_status", "false"), parse_bool, raw.line),
        goal_gate=_coerce(subject, "goal_gate", attrs.get("goal_gate", "false"), parse_bool, raw.line),
        line=raw.line,
    )


def _build_edge(raw: _RawEdge) -> Edge:
    attrs = raw.attrs
    subject = f"edge {raw.source} -> {raw.target}"

    condition = None
    condition_text = attrs.get("condition", "")
    if condition_text.strip():
        try:
            condition = parse_condition(condition_text)
        except ConditionSyntaxError as exc:
            raise ParseError(f"{subject}: {exc}", line=raw.line) from exc

    fidelity = None
    if attrs.get("fidelity"):
        fidelity = _coerce(
            subject,
            "fidelity",
            attrs["fidelity"],
            lambda v: parse_fidelity(v, attrs.get("fidelity_limit")),
            raw.line,
        )

    return Edge(
        source=raw.source,
        target=raw.target,
        label=attrs.get("label", ""),
        condition=condition,
        fidelity=fidelity,
        loop_restart=_coerce(subject, "loop_restart", attrs.get("loop_restart", "false"), parse_bool, raw.line),
        weight=_coerce(subject, "weight", attrs.get("weight", "0"), lambda v: parse_int(v, minimum=-(2**31)), raw.line),
        attrs=attrs,
        line=raw.line,
    )


def parse_dot(text: str) -> PipelineGraph:
    """Parse DOT text into a frozen pipeline graph.

    Structural rules (start/exit, reachability) are not checked here;
    see attractor.core.dag.validation.

    Args:
        text: Graph source.

    Returns:
        Parsed PipelineGraph.

    Raises:
        ParseError: If the text is outside the supported subset.
    """
    parser = _StatementParser(tokenize(text))
    parser.parse()

    nodes = {node_id: _build_node(raw, parser.graph_attrs) for node_id, raw in parser.nodes.items()}
    edges = tuple(_build_edge(raw) for raw in parser.edges)

    default_fidelity = None
    if parser.graph_attrs.get("default_fidelity"):
        try:
            default_fidelity = parse_fidelity(parser.graph_attrs["default_fidelity"])
        except ValueError as exc:
            raise ParseError(f"graph: malformed attribute default_fidelity: {exc}") from None

    return PipelineGraph(
        name=parser.name,
        attrs=parser.graph_attrs,
        nodes=nodes,
        edges=edges,
        default_fidelity=default_fidelity,
    )
