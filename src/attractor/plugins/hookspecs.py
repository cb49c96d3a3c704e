# src/attractor/plugins/hookspecs.py
"""pluggy hook specifications for attractor plugins.

Plugins implement these hooks to supply LLM backends and to observe or
veto tool execution.

Usage (implementing a plugin):
    from attractor.plugins.hookspecs import hookimpl

    class AuditPlugin:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def attractor_after_tool(self, invocation, exit_code):
            record(invocation.node_id, exit_code)

Note: @hookspec defines the hook interface (done here).
      @hookimpl marks plugin implementations of those hooks.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from attractor.core.config import AttractorSettings
    from attractor.plugins.llm.base import LLMBackend

# Project name for pluggy
PROJECT_NAME = "attractor"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


@dataclass(frozen=True, slots=True)
class ToolInvocation:
    """A tool command about to run (or just run) for a node.

    Attributes:
        node_id: Tool node id.
        tool_name: Tool kind exposed as TOOL_NAME (``shell``).
        command: The command line.
        stage_dir: Working directory of the command and its hooks.
        env: Environment added for the command and its hooks.
        pre_hook: ``tool_hooks.pre`` command, if any.
        post_hook: ``tool_hooks.post`` command, if any.
        shell: Shell used for the command and hooks.
    """

    node_id: str
    tool_name: str
    command: str
    stage_dir: Path
    env: Mapping[str, str] = field(default_factory=dict)
    pre_hook: str | None = None
    post_hook: str | None = None
    shell: str = "bash"


class AttractorBackendSpec:
    """Hook specifications for LLM backend plugins."""

    @hookspec(firstresult=True)
    def attractor_llm_backend(self, name: str, settings: AttractorSettings) -> LLMBackend | None:  # type: ignore[empty-body]
        """Return a backend instance for ``name``, or None if not provided.

        Args:
            name: Backend name (``simulated``, ``openrouter``, ...)
            settings: Validated run settings
        """


class AttractorToolSpec:
    """Hook specifications around tool execution."""

    @hookspec
    def attractor_before_tool(self, invocation: ToolInvocation) -> int | None:  # type: ignore[empty-body]
        """Called before a tool command runs.

        Returns:
            A non-zero exit code to fail the attempt without running the
            command, or None/0 to let it proceed.
        """

    @hookspec
    def attractor_after_tool(self, invocation: ToolInvocation, exit_code: int | None) -> None:
        """Called after a tool command ran; exit_code is None on timeout."""
