# src/attractor/contracts/errors.py
"""Exception taxonomy for attractor.

Every error the CLI maps to exit code 1 derives from AttractorError.
Parse and validation errors are raised before a run touches disk;
execution errors are raised after a resumable checkpoint was flushed.
"""

from __future__ import annotations

from collections.abc import Sequence


class AttractorError(Exception):
    """Base class for all attractor failures."""


class ParseError(AttractorError):
    """Raised when graph text is outside the supported DOT subset."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        self.line = line
        self.detail = message
        prefix = f"line {line}: " if line is not None else ""
        super().__init__(f"{prefix}{message}")


class ConditionSyntaxError(AttractorError):
    """Raised when an edge condition cannot be parsed."""


class GraphValidationError(AttractorError):
    """Raised when a parsed graph violates a structural rule.

    Attributes:
        rule: Name of the first rule category with violations.
        violations: All violations of that category, in stable order.
    """

    def __init__(self, rule: str, violations: Sequence[str]) -> None:
        self.rule = rule
        self.violations = tuple(violations)
        super().__init__(f"[{rule}] " + "; ".join(self.violations))


class ExecutionError(AttractorError):
    """Raised when a run cannot continue."""

    def __init__(self, message: str, *, node_id: str | None = None) -> None:
        self.node_id = node_id
        super().__init__(message)


class NodeFailedError(ExecutionError):
    """Raised when a node finished FAIL and no edge handles the failure."""


class GateUnsatisfiedError(ExecutionError):
    """Raised when a goal gate sees a non-satisfying outcome."""


class LoopBoundExceeded(ExecutionError):
    """Raised when max_visits, max_cycles or max_steps is exhausted."""


class IncompatibleCheckpointError(AttractorError):
    """Raised when a checkpoint cannot be resumed against the given graph."""
