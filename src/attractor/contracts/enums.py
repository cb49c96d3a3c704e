# src/attractor/contracts/enums.py
"""Enumerations shared across parser, validator and engine."""

from enum import StrEnum


class NodeKind(StrEnum):
    """Execution role of a node, derived from its shape or ``type``."""

    START = "start"
    EXIT = "exit"
    LLM = "llm"
    TOOL = "tool"
    HUMAN_GATE = "human_gate"
    GOAL_GATE = "goal_gate"
    MANAGER = "manager"
    CONDITIONAL = "conditional"
    PARALLEL = "parallel"
    FAN_IN = "fan_in"


class StageStatus(StrEnum):
    """Terminal status of a node attempt.

    Uses (str, Enum) semantics so values serialize directly into
    checkpoint.json and status.json.
    """

    SUCCESS = "success"
    FAIL = "fail"
    PARTIAL_SUCCESS = "partial_success"

    @property
    def satisfied(self) -> bool:
        """True for statuses that satisfy a goal gate."""
        return self is not StageStatus.FAIL


class PipelineClass(StrEnum):
    """Static classification of a validated pipeline."""

    PLANNING = "PLANNING"
    HYBRID = "HYBRID"
    EXECUTION = "EXECUTION"


class FidelityMode(StrEnum):
    FULL = "full"
    TRUNCATE = "truncate"


class JoinPolicy(StrEnum):
    """How a fan-in node turns branch results into its own status."""

    WAIT_ALL = "wait_all"
    ALL_SUCCESS = "all_success"


class QuestionType(StrEnum):
    CHOICE = "choice"
    FREEFORM = "freeform"


class RunStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
