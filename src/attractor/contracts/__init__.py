# src/attractor/contracts/__init__.py
"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings classes live in attractor.core.config.
"""

from attractor.contracts.checkpoint import (
    CHECKPOINT_FORMAT_VERSION,
    Checkpoint,
    Manifest,
    ResumeCheck,
    ResumePoint,
    context_value,
)
from attractor.contracts.enums import (
    FidelityMode,
    JoinPolicy,
    NodeKind,
    PipelineClass,
    QuestionType,
    RunStatus,
    StageStatus,
)
from attractor.contracts.events import (
    LoopRestarted,
    NodeCompleted,
    NodeRetrying,
    NodeSkipped,
    NodeStarted,
    ParallelCompleted,
    ParallelStarted,
    RunFinished,
    RunStarted,
)
from attractor.contracts.errors import (
    AttractorError,
    ConditionSyntaxError,
    ExecutionError,
    GateUnsatisfiedError,
    GraphValidationError,
    IncompatibleCheckpointError,
    LoopBoundExceeded,
    NodeFailedError,
    ParseError,
)
from attractor.contracts.outcome import NodeOutcome, StageResult

__all__ = [
    "CHECKPOINT_FORMAT_VERSION",
    "AttractorError",
    "Checkpoint",
    "ConditionSyntaxError",
    "ExecutionError",
    "FidelityMode",
    "GateUnsatisfiedError",
    "GraphValidationError",
    "IncompatibleCheckpointError",
    "JoinPolicy",
    "LoopBoundExceeded",
    "LoopRestarted",
    "Manifest",
    "NodeCompleted",
    "NodeFailedError",
    "NodeKind",
    "NodeOutcome",
    "NodeRetrying",
    "NodeSkipped",
    "NodeStarted",
    "ParallelCompleted",
    "ParallelStarted",
    "ParseError",
    "PipelineClass",
    "QuestionType",
    "ResumeCheck",
    "ResumePoint",
    "RunFinished",
    "RunStarted",
    "RunStatus",
    "StageResult",
    "StageStatus",
    "context_value",
]
