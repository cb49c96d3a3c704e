# src/attractor/engine/handlers/llm.py
"""LLM (codergen) nodes: render the prompt and call the backend."""

from __future__ import annotations

import threading

from attractor.contracts import StageResult, StageStatus
from attractor.core.dag.models import LLMSpec, Node
from attractor.core.logging import get_logger
from attractor.engine.handlers.base import HandlerServices, StageRequest
from attractor.engine.handlers.tool import CONTEXT_FILENAME, output_updates, parse_stage_status
from attractor.plugins.llm.base import LLMClientError, LLMRequest
from attractor.plugins.llm.templates import PromptTemplate, TemplateError

logger = get_logger(__name__)

PROMPT_FILENAME = "prompt.md"
RESPONSE_FILENAME = "response.md"


class LLMHandler:
    """Writes prompt.md, context.json and response.md for each attempt.

    Backend errors become failed attempts so the node's retry budget
    applies to them.
    """

    def __init__(self, services: HandlerServices) -> None:
        self._services = services
        self._templates: dict[str, PromptTemplate] = {}
        self._lock = threading.Lock()

    def _template_for(self, node: Node, source: str) -> PromptTemplate:
        with self._lock:
            template = self._templates.get(node.id)
            if template is None:
                template = PromptTemplate(source)
                self._templates[node.id] = template
            return template

    def execute(self, request: StageRequest) -> StageResult:
        node = request.node
        spec = node.spec
        if not isinstance(spec, LLMSpec):
            raise TypeError(f"node '{node.id}' is not an LLM node")

        artifacts = request.artifacts
        artifacts.write_json(node.id, CONTEXT_FILENAME, dict(request.context))
        try:
            prompt = self._template_for(node, spec.prompt).render(
                request.context, node_id=node.id, goal=request.graph.goal
            )
        except TemplateError as exc:
            return StageResult.fail(f"prompt template error: {exc}")
        artifacts.write_text(node.id, PROMPT_FILENAME, f"{prompt}\n")

        llm_settings = self._services.settings.llm
        llm_request = LLMRequest(
            node_id=node.id,
            prompt=prompt,
            model=spec.llm_model or llm_settings.model,
            provider=spec.llm_provider,
            reasoning_effort=spec.reasoning_effort,
            timeout_seconds=node.timeout_seconds,
            attrs=dict(node.attrs),
        )
        try:
            response = self._services.llm_backend.complete(llm_request)
        except LLMClientError as exc:
            logger.warning("LLM call failed", node_id=node.id, error=str(exc), retryable=exc.retryable)
            return StageResult.fail(f"llm call failed: {exc}")

        artifacts.write_text(node.id, RESPONSE_FILENAME, f"{response.content}\n")
        try:
            status = parse_stage_status(response.outcome)
        except ValueError:
            status = StageStatus.FAIL
        updates = {**output_updates(node.id, response.content), "last_response": response.content}
        notes = f"{response.model}: {response.total_tokens} tokens"
        if status is StageStatus.FAIL:
            return StageResult.fail(f"llm reported outcome {response.outcome!r}", context_updates=updates)
        return StageResult(status=status, notes=notes, context_updates=updates)
