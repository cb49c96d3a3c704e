# src/attractor/plugins/manager.py
"""Plugin manager for registration and hook dispatch.

Uses pluggy for hook-based plugin registration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pluggy

from attractor.plugins.hookspecs import PROJECT_NAME, AttractorBackendSpec, AttractorToolSpec, ToolInvocation

if TYPE_CHECKING:
    from attractor.core.config import AttractorSettings
    from attractor.plugins.llm.base import LLMBackend


class PluginManager:
    """Manages plugin registration and the engine-facing hook calls.

    Usage:
        manager = PluginManager()
        manager.register_builtin_plugins()

        backend = manager.get_llm_backend("simulated", settings)
        veto = manager.before_tool(invocation)
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(AttractorBackendSpec)
        self._pm.add_hookspecs(AttractorToolSpec)

    def register_builtin_plugins(self) -> None:
        """Register the shell hook runner and the built-in LLM backends.

        Also loads third-party plugins advertised under the
        ``attractor`` entry point group.
        """
        from attractor.plugins.builtin import BuiltinBackendsPlugin, ShellHooksPlugin

        self.register(ShellHooksPlugin())
        self.register(BuiltinBackendsPlugin())
        self._pm.load_setuptools_entrypoints(PROJECT_NAME)

    def register(self, plugin: Any) -> None:
        """Register a plugin.

        Args:
            plugin: Plugin instance implementing hook methods

        Raises:
            ValueError: If the plugin is already registered
        """
        self._pm.register(plugin)

    def get_llm_backend(self, name: str, settings: AttractorSettings) -> LLMBackend:
        """Instantiate the backend registered under ``name``.

        Raises:
            ValueError: If no plugin provides the backend
        """
        backend: LLMBackend | None = self._pm.hook.attractor_llm_backend(name=name, settings=settings)
        if backend is None:
            raise ValueError(f"No LLM backend registered under '{name}'")
        return backend

    def before_tool(self, invocation: ToolInvocation) -> int | None:
        """Run pre-tool hooks; the first non-zero code vetoes the command."""
        codes: list[int | None] = self._pm.hook.attractor_before_tool(invocation=invocation)
        for code in codes:
            if code:
                return code
        return None

    def after_tool(self, invocation: ToolInvocation, exit_code: int | None) -> None:
        self._pm.hook.attractor_after_tool(invocation=invocation, exit_code=exit_code)
