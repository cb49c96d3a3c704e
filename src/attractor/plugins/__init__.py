# src/attractor/plugins/__init__.py
"""Plugin system: pluggy hooks, tool hooks and LLM backends."""

from attractor.plugins.hookspecs import PROJECT_NAME, ToolInvocation, hookimpl, hookspec
from attractor.plugins.manager import PluginManager

__all__ = ["PROJECT_NAME", "PluginManager", "ToolInvocation", "hookimpl", "hookspec"]
