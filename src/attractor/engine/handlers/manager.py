# src/attractor/engine/handlers/manager.py
"""Manager nodes: a bounded supervision loop waiting for a stop signal.

Each cycle optionally runs the node's ``tool_command`` as an observation
step, applies the context updates it reports, and then checks the stop
key. The cycle count survives resume through the checkpoint's loop
counters.
"""

from __future__ import annotations

import dataclasses

from attractor.contracts import LoopBoundExceeded, StageResult
from attractor.core.dag.models import ManagerSpec
from attractor.core.logging import get_logger
from attractor.engine.handlers.base import HandlerServices, StageRequest
from attractor.engine.handlers.tool import CONTEXT_FILENAME, ShellCommandRunner

logger = get_logger(__name__)

RESPONSE_FILENAME = "response.md"
STOP_VALUES = frozenset({"true", "1", "yes"})


def stop_requested(value: str | None) -> bool:
    return value is not None and value.strip().lower() in STOP_VALUES


class ManagerHandler:
    def __init__(self, services: HandlerServices, runner: ShellCommandRunner) -> None:
        self._services = services
        self._runner = runner

    def execute(self, request: StageRequest) -> StageResult:
        node = request.node
        spec = node.spec if isinstance(node.spec, ManagerSpec) else ManagerSpec()
        max_cycles = spec.max_cycles or self._services.settings.engine.default_max_cycles

        context = dict(request.context)
        updates: dict[str, str] = {}
        request.artifacts.write_json(node.id, CONTEXT_FILENAME, context)

        for cycle in range(1, max_cycles + 1):
            request.loop_counters[node.id] = request.loop_counters.get(node.id, 0) + 1
            if spec.command:
                observed = self._runner.run(dataclasses.replace(request, context=context), spec.command, prompt=node.label)
                context.update(observed.context_updates)
                updates.update(observed.context_updates)

            if stop_requested(context.get(spec.stop_key)):
                request.artifacts.write_text(node.id, RESPONSE_FILENAME, "manager stop condition met\n")
                updates["manager.cycles"] = str(cycle)
                return StageResult.success(f"stopped after {cycle} cycle(s)", context_updates=updates)

            logger.debug("Manager cycle without stop signal", node_id=node.id, cycle=cycle, max_cycles=max_cycles)
            if cycle < max_cycles and spec.poll_interval_seconds:
                self._services.sleep(spec.poll_interval_seconds)

        raise LoopBoundExceeded(
            f"manager node '{node.id}' exceeded max_cycles ({max_cycles}) without {spec.stop_key}",
            node_id=node.id,
        )
