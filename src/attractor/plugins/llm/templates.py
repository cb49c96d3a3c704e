# src/attractor/plugins/llm/templates.py
"""Jinja2-based prompt templating for LLM nodes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from jinja2 import StrictUndefined, TemplateSyntaxError, UndefinedError
from jinja2.exceptions import SecurityError
from jinja2.sandbox import SandboxedEnvironment

_TEMPLATE_MARKERS = ("{{", "{%")


class TemplateError(Exception):
    """Error in template rendering (including sandbox violations)."""


class PromptTemplate:
    """Jinja2 prompt template over the run context.

    Uses a sandboxed environment with strict undefined variables.
    Templates reach context values through the ``context`` namespace,
    with subscript syntax for dotted keys:

        Summarize {{ context["plan.output"] }} for {{ goal }}.

    Prompts without any ``{{`` or ``{%`` marker are used verbatim, so
    plain prose containing braces never fails to render.
    """

    def __init__(self, template_string: str) -> None:
        """Initialize template.

        Raises:
            TemplateError: If template syntax is invalid
        """
        self._template_string = template_string
        self._env = SandboxedEnvironment(undefined=StrictUndefined, autoescape=False)
        self._template = None
        if any(marker in template_string for marker in _TEMPLATE_MARKERS):
            try:
                self._template = self._env.from_string(template_string)
            except TemplateSyntaxError as e:
                raise TemplateError(f"Invalid template syntax: {e}") from e

    def render(self, context: Mapping[str, str], *, node_id: str, goal: str) -> str:
        """Render with the projected context.

        Raises:
            TemplateError: If rendering fails (undefined variable, sandbox violation, etc.)
        """
        if self._template is None:
            return self._template_string
        variables: dict[str, Any] = {"context": dict(context), "node_id": node_id, "goal": goal}
        try:
            return self._template.render(**variables)
        except UndefinedError as e:
            raise TemplateError(f"Undefined variable: {e}") from e
        except SecurityError as e:
            raise TemplateError(f"Sandbox violation: {e}") from e
        except Exception as e:
            raise TemplateError(f"Template rendering failed: {e}") from e
