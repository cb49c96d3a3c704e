# src/attractor/engine/handlers/tool.py
"""Tool nodes: run a shell command in the stage directory.

Outcome precedence for an attempt:

1. ``status.json`` written by the command into its stage directory
2. ``auto_status=true`` on the node (synthesized success)
3. the exit code (0 success, timeout or non-zero fail)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from attractor.contracts import StageResult, StageStatus
from attractor.contracts.checkpoint import context_value
from attractor.core.dag.models import Node, ToolSpec
from attractor.core.logging import get_logger
from attractor.engine.artifacts import STATUS_FILENAME, read_json_object
from attractor.engine.handlers.base import HandlerServices, StageRequest
from attractor.engine.shell import ShellResult, run_shell
from attractor.plugins.hookspecs import ToolInvocation

logger = get_logger(__name__)

PROMPT_FILENAME = "prompt.txt"
CONTEXT_FILENAME = "context.json"
OUTPUT_FILENAME = "tool_output.txt"
AUTO_STATUS_NOTE = "auto_status synthesized success"

_STATUS_ALIASES: Mapping[str, StageStatus] = {
    "success": StageStatus.SUCCESS,
    "ok": StageStatus.SUCCESS,
    "fail": StageStatus.FAIL,
    "failed": StageStatus.FAIL,
    "failure": StageStatus.FAIL,
    "error": StageStatus.FAIL,
    "partial_success": StageStatus.PARTIAL_SUCCESS,
    "partial": StageStatus.PARTIAL_SUCCESS,
}


def parse_stage_status(value: str) -> StageStatus:
    """Map a status word written by a tool to a StageStatus.

    Raises:
        ValueError: If the word is not a recognized status.
    """
    status = _STATUS_ALIASES.get(value.strip().lower())
    if status is None:
        raise ValueError(f"unknown status {value!r}")
    return status


class ToolStatusFile(BaseModel):
    """Schema of a status.json written by a tool command."""

    model_config = ConfigDict(extra="ignore")

    outcome: StageStatus | None = None
    status: StageStatus | None = None
    notes: str = ""
    failure_reason: str | None = None
    preferred_label: str | None = None
    context_updates: dict[str, Any] = {}

    @field_validator("outcome", "status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_stage_status(value)
        return value

    def to_result(self) -> StageResult:
        status = self.outcome or self.status
        if status is None:
            raise ValueError("status.json must set 'outcome' or 'status'")
        failure_reason = self.failure_reason
        if status is StageStatus.FAIL and not failure_reason:
            failure_reason = self.notes or "tool reported failure"
        return StageResult(
            status=status,
            notes=self.notes or (failure_reason or ""),
            failure_reason=failure_reason,
            preferred_label=self.preferred_label,
            context_updates={str(k): context_value(v) for k, v in self.context_updates.items()},
        )


def output_updates(node_id: str, output: str) -> dict[str, str]:
    """Context keys recording a stage's (trimmed) output."""
    trimmed = output.strip()
    return {f"{node_id}.output": trimmed} if trimmed else {}


def tool_environment(request: StageRequest) -> dict[str, str]:
    """Environment exposed to tool commands and their hooks."""
    stage_dir = request.artifacts.stage_dir(request.node.id)
    return {
        "ATTRACTOR_LOGS_ROOT": str(request.logs_root),
        "ATTRACTOR_STAGE_DIR": str(stage_dir),
        "ATTRACTOR_NODE_ID": request.node.id,
        "ATTRACTOR_PROMPT_FILE": str(stage_dir / PROMPT_FILENAME),
        "ATTRACTOR_CONTEXT_FILE": str(stage_dir / CONTEXT_FILENAME),
        "TOOL_NAME": "shell",
        "NODE_ID": request.node.id,
    }


def _hook(node: Node, graph_attrs: Mapping[str, str], name: str) -> str | None:
    key = f"tool_hooks.{name}"
    return node.attrs.get(key) or graph_attrs.get(key) or None


def _timeout_text(node: Node, seconds: float | None) -> str:
    return node.attrs.get("timeout") or f"{seconds}s"


class ShellCommandRunner:
    """Runs one node command with the stage-file protocol and hooks.

    Shared by tool nodes and manager observation cycles.
    """

    def __init__(self, services: HandlerServices) -> None:
        self._services = services

    def run(self, request: StageRequest, command: str, *, prompt: str, tool_name: str = "shell") -> StageResult:
        node = request.node
        artifacts = request.artifacts
        stage_dir = artifacts.stage_dir(node.id)

        artifacts.remove(node.id, STATUS_FILENAME)
        artifacts.write_text(node.id, PROMPT_FILENAME, f"{prompt}\n")
        artifacts.write_json(node.id, CONTEXT_FILENAME, dict(request.context))

        settings = self._services.settings.tools
        env = tool_environment(request)
        env["TOOL_NAME"] = tool_name
        invocation = ToolInvocation(
            node_id=node.id,
            tool_name=tool_name,
            command=command,
            stage_dir=stage_dir,
            env=env,
            pre_hook=_hook(node, request.graph.attrs, "pre"),
            post_hook=_hook(node, request.graph.attrs, "post"),
            shell=settings.shell,
        )

        veto = self._services.plugins.before_tool(invocation)
        if veto:
            return StageResult.fail(f"tool pre-hook failed ({veto})")

        timeout = node.timeout_seconds or settings.default_timeout_seconds
        try:
            result = run_shell(command, shell=settings.shell, cwd=stage_dir, env=env, timeout=timeout)
        except OSError as exc:
            return StageResult.fail(f"failed to start tool: {exc}")
        artifacts.write_text(node.id, OUTPUT_FILENAME, result.combined_output)
        self._services.plugins.after_tool(invocation, result.exit_code)

        logger.debug(
            "Tool command finished",
            node_id=node.id,
            exit_code=result.exit_code,
            timed_out=result.timed_out,
            duration_seconds=round(result.duration_seconds, 3),
        )
        return self._interpret(request, result, timeout)

    def _interpret(self, request: StageRequest, result: ShellResult, timeout: float | None) -> StageResult:
        node = request.node
        updates = {
            **output_updates(node.id, result.combined_output),
            "tool.output": result.combined_output.strip(),
            "tool.exit_code": "" if result.exit_code is None else str(result.exit_code),
        }

        status_text = request.artifacts.read_text(node.id, STATUS_FILENAME)
        if status_text is not None:
            data = read_json_object(status_text)
            if data is None:
                return StageResult.fail("invalid status.json: expected a JSON object", context_updates=updates)
            try:
                reported = ToolStatusFile.model_validate(data).to_result()
            except (ValidationError, ValueError) as exc:
                return StageResult.fail(f"invalid status.json: {exc}", context_updates=updates)
            return StageResult(
                status=reported.status,
                notes=reported.notes,
                failure_reason=reported.failure_reason,
                preferred_label=reported.preferred_label,
                context_updates={**updates, **reported.context_updates},
            )

        if node.auto_status:
            return StageResult.success(AUTO_STATUS_NOTE, context_updates=updates, status_artifact=False)
        if result.succeeded:
            return StageResult.success("tool exited with code 0", context_updates=updates)
        if result.timed_out:
            return StageResult.fail(f"tool timed out after {_timeout_text(node, timeout)}", context_updates=updates)
        return StageResult.fail(f"tool exited with code {result.exit_code}", context_updates=updates)


class ToolHandler:
    """Runs ``tool_command`` for tool nodes."""

    def __init__(self, services: HandlerServices) -> None:
        self._runner = ShellCommandRunner(services)

    def execute(self, request: StageRequest) -> StageResult:
        spec = request.node.spec
        if isinstance(spec, ToolSpec):
            return self._runner.run(request, spec.command, prompt=spec.prompt or request.node.label, tool_name=spec.tool_name)
        raise TypeError(f"node '{request.node.id}' has no tool command")
