# src/attractor/core/dag/conditions.py
"""Edge condition language.

Conditions are parsed once, at graph load time, into an immutable AST and
evaluated against the run context after each node completes.

Grammar::

    condition := clause ( "&&" clause )*
    clause    := key ( ("=" | "==" | "!=") literal )?
    key       := [A-Za-z_][A-Za-z0-9_.]*
    literal   := quoted string | bare text up to the next "&&"

Key resolution:
    ``outcome``          status of the node that just completed
    ``preferred_label``  label preferred by that node (human gates)
    ``context.X``        context key ``context.X``, falling back to ``X``
    anything else        context key of that name

A clause without an operator is a truthiness check.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from attractor.contracts import ConditionSyntaxError, StageStatus

_KEY_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")
_FALSY = frozenset({"", "false", "0", "no", "none", "off"})


def is_truthy(value: str | None) -> bool:
    """Truthiness used by bare-key clauses and stop signals."""
    if value is None:
        return False
    return value.strip().lower() not in _FALSY


class Operator(StrEnum):
    EQ = "=="
    NE = "!="
    TRUTHY = "truthy"


@dataclass(frozen=True, slots=True)
class ConditionEnv:
    """Values a condition is evaluated against."""

    context: Mapping[str, str]
    outcome: StageStatus | None = None
    preferred_label: str | None = None

    def resolve(self, key: str) -> str | None:
        if key == "outcome":
            return self.outcome.value if self.outcome is not None else None
        if key == "preferred_label":
            return self.preferred_label
        if key in self.context:
            return self.context[key]
        if key.startswith("context."):
            return self.context.get(key[len("context.") :])
        return None


@dataclass(frozen=True, slots=True)
class Clause:
    key: str
    operator: Operator
    literal: str | None = None

    def evaluate(self, env: ConditionEnv) -> bool:
        value = env.resolve(self.key)
        if self.operator is Operator.TRUTHY:
            return is_truthy(value)
        actual = value if value is not None else ""
        if self.operator is Operator.EQ:
            return actual == self.literal
        return actual != self.literal

    def __str__(self) -> str:
        if self.operator is Operator.TRUTHY:
            return self.key
        return f"{self.key}{self.operator.value}{self.literal}"


@dataclass(frozen=True, slots=True)
class Condition:
    """Conjunction of clauses. An empty conjunction always matches."""

    source: str
    clauses: tuple[Clause, ...]

    def evaluate(self, env: ConditionEnv) -> bool:
        return all(clause.evaluate(env) for clause in self.clauses)

    @property
    def is_empty(self) -> bool:
        return not self.clauses

    def __str__(self) -> str:
        return " && ".join(str(c) for c in self.clauses)


def _split_conjunction(text: str) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    quote = False
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\" and quote and i + 1 < len(text):
            current.append(text[i : i + 2])
            i += 2
            continue
        if ch == '"':
            quote = not quote
        elif not quote and text.startswith("&&", i):
            parts.append("".join(current))
            current = []
            i += 2
            continue
        current.append(ch)
        i += 1
    if quote:
        raise ConditionSyntaxError(f"Unterminated string in condition: {text!r}")
    parts.append("".join(current))
    return parts


def _parse_literal(raw: str, source: str) -> str:
    raw = raw.strip()
    if raw.startswith('"'):
        if len(raw) < 2 or not raw.endswith('"'):
            raise ConditionSyntaxError(f"Malformed quoted literal in condition: {source!r}")
        return raw[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    if not raw:
        raise ConditionSyntaxError(f"Missing value after operator in condition: {source!r}")
    return raw


def _parse_clause(raw: str, source: str) -> Clause:
    text = raw.strip()
    if not text:
        raise ConditionSyntaxError(f"Empty clause in condition: {source!r}")
    match = _KEY_PATTERN.match(text)
    if match is None:
        raise ConditionSyntaxError(f"Invalid key in condition clause {text!r}")
    key = match.group(0)
    rest = text[match.end() :].lstrip()
    if not rest:
        return Clause(key=key, operator=Operator.TRUTHY)
    if rest.startswith("!="):
        return Clause(key=key, operator=Operator.NE, literal=_parse_literal(rest[2:], source))
    if rest.startswith("=="):
        return Clause(key=key, operator=Operator.EQ, literal=_parse_literal(rest[2:], source))
    if rest.startswith("="):
        return Clause(key=key, operator=Operator.EQ, literal=_parse_literal(rest[1:], source))
    raise ConditionSyntaxError(f"Unsupported operator in condition clause {text!r}")


def parse_condition(text: str) -> Condition:
    """Parse condition text into an immutable AST.

    Args:
        text: Raw condition attribute value.

    Returns:
        Parsed Condition. Blank text yields an always-true condition.

    Raises:
        ConditionSyntaxError: If the text does not match the grammar.
    """
    if not text.strip():
        return Condition(source=text, clauses=())
    clauses = tuple(_parse_clause(part, text) for part in _split_conjunction(text))
    return Condition(source=text, clauses=clauses)
