# tests/unit/engine/handlers/test_llm_handler.py
"""Tests for LLM nodes over the simulated and fake backends."""

import dataclasses
from collections.abc import Callable
from pathlib import Path

from attractor.contracts import StageStatus
from attractor.engine.handlers import HandlerServices, StageRequest
from attractor.engine.handlers.llm import LLMHandler
from attractor.plugins.llm import LLMClientError, LLMRequest, LLMResponse, RateLimitError

MakeRequest = Callable[..., StageRequest]


class RecordingBackend:
    """Returns a canned response and keeps every request."""

    name = "recording"

    def __init__(self, response: LLMResponse | None = None, error: LLMClientError | None = None) -> None:
        self.requests: list[LLMRequest] = []
        self._response = response or LLMResponse(content="done", model="fake-model", usage={"prompt_tokens": 3})
        self._error = error

    def complete(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if self._error is not None:
            raise self._error
        return self._response

    def close(self) -> None:
        pass


def _handler(services: HandlerServices, backend: RecordingBackend) -> LLMHandler:
    return LLMHandler(dataclasses.replace(services, llm_backend=backend))


class TestSimulatedBackend:
    def test_writes_stage_files(self, services: HandlerServices, make_request: MakeRequest, tmp_path: Path) -> None:
        request = make_request('digraph G { plan [prompt="Write a plan"] }', "plan")

        result = LLMHandler(services).execute(request)

        assert result.status is StageStatus.SUCCESS
        stage = tmp_path / "logs" / "plan"
        assert (stage / "prompt.md").read_text() == "Write a plan\n"
        response = (stage / "response.md").read_text()
        assert response.startswith("[simulated] plan")
        assert result.context_updates["plan.output"] == response.strip()
        assert result.context_updates["last_response"] == response[:-1]

    def test_simulated_output_is_deterministic(self, services: HandlerServices, make_request: MakeRequest) -> None:
        dot = 'digraph G { plan [prompt="Write a plan"] }'

        first = LLMHandler(services).execute(make_request(dot, "plan"))
        second = LLMHandler(services).execute(make_request(dot, "plan"))

        assert first.context_updates == second.context_updates

    def test_sim_outcome_forces_failure(self, services: HandlerServices, make_request: MakeRequest) -> None:
        request = make_request('digraph G { plan [prompt="p", sim.outcome="fail"] }', "plan")

        result = LLMHandler(services).execute(request)

        assert result.status is StageStatus.FAIL
        assert result.failure_reason == "llm reported outcome 'fail'"
        assert "plan.output" in result.context_updates

    def test_sim_outcome_partial(self, services: HandlerServices, make_request: MakeRequest) -> None:
        request = make_request('digraph G { plan [prompt="p", sim.outcome="partial_success", sim.response="meh"] }', "plan")

        result = LLMHandler(services).execute(request)

        assert result.status is StageStatus.PARTIAL_SUCCESS
        assert result.context_updates["plan.output"] == "meh"


class TestPrompts:
    def test_template_reads_context(self, services: HandlerServices, make_request: MakeRequest) -> None:
        backend = RecordingBackend()
        dot = 'digraph G { graph [goal="ship"] review [prompt="Review {{ context[\\"plan.output\\"] }} for {{ goal }}"] }'

        _handler(services, backend).execute(make_request(dot, "review", context={"plan.output": "the plan"}))

        assert backend.requests[0].prompt == "Review the plan for ship"

    def test_plain_braces_are_verbatim(self, services: HandlerServices, make_request: MakeRequest) -> None:
        backend = RecordingBackend()

        _handler(services, backend).execute(make_request('digraph G { a [prompt="Return {key: value} JSON"] }', "a"))

        assert backend.requests[0].prompt == "Return {key: value} JSON"

    def test_undefined_variable_fails_attempt(self, services: HandlerServices, make_request: MakeRequest) -> None:
        backend = RecordingBackend()

        result = _handler(services, backend).execute(make_request('digraph G { a [prompt="{{ missing }}"] }', "a"))

        assert result.status is StageStatus.FAIL
        assert result.failure_reason is not None
        assert result.failure_reason.startswith("prompt template error")
        assert backend.requests == []

    def test_model_from_node_or_settings(self, services: HandlerServices, make_request: MakeRequest) -> None:
        backend = RecordingBackend()
        handler = _handler(services, backend)
        dot = 'digraph G { a [prompt="x", llm_model="node-model", reasoning_effort="low", timeout="5s"]; b [prompt="y"] }'

        handler.execute(make_request(dot, "a"))
        handler.execute(make_request(dot, "b"))

        first, second = backend.requests
        assert (first.model, first.reasoning_effort, first.timeout_seconds) == ("node-model", "low", 5.0)
        assert second.model == services.settings.llm.model


class TestBackendErrors:
    def test_client_error_becomes_failed_attempt(self, services: HandlerServices, make_request: MakeRequest) -> None:
        backend = RecordingBackend(error=RateLimitError("Rate limited: 429"))

        result = _handler(services, backend).execute(make_request('digraph G { a [prompt="x"] }', "a"))

        assert result.status is StageStatus.FAIL
        assert result.failure_reason == "llm call failed: Rate limited: 429"

    def test_notes_report_model_and_tokens(self, services: HandlerServices, make_request: MakeRequest) -> None:
        backend = RecordingBackend(
            LLMResponse(content="ok", model="m1", usage={"prompt_tokens": 5, "completion_tokens": 7}),
        )

        result = _handler(services, backend).execute(make_request('digraph G { a [prompt="x"] }', "a"))

        assert result.notes == "m1: 12 tokens"
