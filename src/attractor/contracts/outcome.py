# src/attractor/contracts/outcome.py
"""Stage results returned by handlers and outcomes persisted per node."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from attractor.contracts.enums import StageStatus


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True, slots=True)
class StageResult:
    """What a single handler attempt produced.

    Attributes:
        status: Terminal status of the attempt.
        notes: Short human-readable summary.
        failure_reason: Why the attempt failed, when it did.
        preferred_label: Edge label the handler wants routing to prefer.
        context_updates: Keys to merge into the run context.
        suggested_next: Node the engine should jump to instead of selecting
            an outgoing edge (a parallel node hands off to its fan-in).
        status_artifact: Whether the engine writes status.json for the stage.
    """

    status: StageStatus
    notes: str = ""
    failure_reason: str | None = None
    preferred_label: str | None = None
    context_updates: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    suggested_next: str | None = None
    status_artifact: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.context_updates, MappingProxyType):
            object.__setattr__(self, "context_updates", MappingProxyType(dict(self.context_updates)))

    @classmethod
    def success(cls, notes: str = "", **kwargs: Any) -> StageResult:
        return cls(status=StageStatus.SUCCESS, notes=notes, **kwargs)

    @classmethod
    def fail(cls, reason: str, **kwargs: Any) -> StageResult:
        return cls(status=StageStatus.FAIL, notes=reason, failure_reason=reason, **kwargs)


@dataclass(frozen=True, slots=True)
class NodeOutcome:
    """Latest recorded outcome of a node, as stored in checkpoint.json."""

    status: StageStatus
    attempt: int
    notes: str = ""
    timestamp: str = field(default_factory=_utc_now)
    failure_reason: str | None = None
    preferred_label: str | None = None

    @classmethod
    def from_result(cls, result: StageResult, attempt: int) -> NodeOutcome:
        return cls(
            status=result.status,
            attempt=attempt,
            notes=result.notes,
            failure_reason=result.failure_reason,
            preferred_label=result.preferred_label,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status.value,
            "attempt": self.attempt,
            "notes": self.notes,
            "timestamp": self.timestamp,
        }
        if self.failure_reason is not None:
            data["failure_reason"] = self.failure_reason
        if self.preferred_label is not None:
            data["preferred_label"] = self.preferred_label
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NodeOutcome:
        """Rebuild from checkpoint JSON.

        Raises:
            ValueError: If status is not a known StageStatus.
            KeyError: If status is missing.
        """
        return cls(
            status=StageStatus(data["status"]),
            attempt=int(data.get("attempt", 1)),
            notes=str(data.get("notes", "")),
            timestamp=str(data.get("timestamp") or _utc_now()),
            failure_reason=data.get("failure_reason"),
            preferred_label=data.get("preferred_label"),
        )
