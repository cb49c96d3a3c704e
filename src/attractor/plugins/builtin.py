# src/attractor/plugins/builtin.py
"""Built-in plugins: ``tool_hooks.pre``/``tool_hooks.post`` and backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from attractor.core.logging import get_logger
from attractor.engine.shell import run_shell
from attractor.plugins.hookspecs import ToolInvocation, hookimpl
from attractor.plugins.llm.openrouter import OpenRouterBackend
from attractor.plugins.llm.simulated import SimulatedLLMBackend

if TYPE_CHECKING:
    from attractor.core.config import AttractorSettings
    from attractor.plugins.llm.base import LLMBackend

logger = get_logger(__name__)


class ShellHooksPlugin:
    """Runs the node's pre/post hook commands in the stage directory.

    A pre-hook exiting non-zero vetoes the command. Post-hook failures
    are logged and otherwise ignored.
    """

    @hookimpl
    def attractor_before_tool(self, invocation: ToolInvocation) -> int | None:
        if not invocation.pre_hook:
            return None
        result = run_shell(
            invocation.pre_hook,
            shell=invocation.shell,
            cwd=invocation.stage_dir,
            env=invocation.env,
        )
        if result.exit_code != 0:
            logger.warning(
                "Tool pre-hook failed",
                node_id=invocation.node_id,
                exit_code=result.exit_code,
                stderr=result.stderr.strip()[-500:],
            )
            return result.exit_code if result.exit_code is not None else 1
        return None

    @hookimpl
    def attractor_after_tool(self, invocation: ToolInvocation, exit_code: int | None) -> None:
        if not invocation.post_hook:
            return
        env = {**invocation.env, "EXIT_CODE": "" if exit_code is None else str(exit_code)}
        result = run_shell(invocation.post_hook, shell=invocation.shell, cwd=invocation.stage_dir, env=env)
        if result.exit_code != 0:
            logger.warning("Tool post-hook failed", node_id=invocation.node_id, exit_code=result.exit_code)


class BuiltinBackendsPlugin:
    """Provides the ``simulated`` and ``openrouter`` backends."""

    @hookimpl
    def attractor_llm_backend(self, name: str, settings: AttractorSettings) -> LLMBackend | None:
        if name == SimulatedLLMBackend.name:
            return SimulatedLLMBackend()
        if name == OpenRouterBackend.name:
            return OpenRouterBackend(settings.llm)
        return None
