# src/attractor/engine/handlers/parallel.py
"""Parallel nodes delegate to the ParallelCoordinator."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from attractor.contracts import StageResult
from attractor.engine.handlers.base import StageRequest
from attractor.engine.parallel import BranchResult, ParallelCoordinator


class ParallelHandler:
    """Runs the branches, then hands the merged results to ``record``.

    ``record`` folds branch history (completed nodes, outcomes, visits)
    into the owning run's state.
    """

    def __init__(self, coordinator: ParallelCoordinator, record: Callable[[Sequence[BranchResult]], None]) -> None:
        self._coordinator = coordinator
        self._record = record

    def execute(self, request: StageRequest) -> StageResult:
        result, branches = self._coordinator.fan_out(request.node, request.context)
        self._record(branches)
        return result
