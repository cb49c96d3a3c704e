# src/attractor/engine/handlers/human.py
"""Human gates: ask the interviewer and route on the chosen label."""

from __future__ import annotations

from attractor.contracts import QuestionType, StageResult
from attractor.core.dag.models import HumanGateSpec, PipelineGraph
from attractor.engine.handlers.base import HandlerServices, StageRequest
from attractor.engine.interviewer import Question

PROMPT_FILENAME = "prompt.md"
RESPONSE_FILENAME = "response.md"


def gate_options(spec: HumanGateSpec, graph: PipelineGraph, node_id: str) -> tuple[str, ...]:
    """Choices offered by a gate: its ``options`` or its outgoing edge labels."""
    if spec.options:
        return spec.options
    labels: list[str] = []
    for edge in graph.outgoing(node_id):
        if edge.label and edge.label not in labels:
            labels.append(edge.label)
    return tuple(labels)


class HumanGateHandler:
    def __init__(self, services: HandlerServices) -> None:
        self._services = services

    def execute(self, request: StageRequest) -> StageResult:
        node = request.node
        spec = node.spec
        if not isinstance(spec, HumanGateSpec):
            raise TypeError(f"node '{node.id}' is not a human gate")

        question = Question(
            node_id=node.id,
            prompt=spec.prompt,
            question_type=spec.question_type,
            options=gate_options(spec, request.graph, node.id),
            default=spec.default,
        )
        prompt_lines = [question.prompt]
        prompt_lines.extend(f"- {option}" for option in question.options)
        request.artifacts.write_text(node.id, PROMPT_FILENAME, "\n".join(prompt_lines) + "\n")

        answer = self._services.interviewer.ask(question)
        request.artifacts.write_text(node.id, RESPONSE_FILENAME, f"{answer.response}\n")

        updates = {"human.gate.selected": answer.selected, "human.gate.label": answer.selected}
        if question.question_type is QuestionType.FREEFORM:
            updates["human.gate.response"] = answer.response
        return StageResult.success(
            f"selected {answer.selected!r}",
            preferred_label=answer.selected,
            context_updates=updates,
        )
