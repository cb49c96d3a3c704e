# tests/unit/engine/handlers/test_human_handler.py
"""Tests for human gates and the interviewers."""

import dataclasses
from collections.abc import Callable
from pathlib import Path

import pytest
import typer

from attractor.contracts import ExecutionError, QuestionType, StageStatus
from attractor.engine.handlers import HandlerServices, StageRequest
from attractor.engine.handlers.human import HumanGateHandler
from attractor.engine.interviewer import (
    DEFAULT_APPROVAL,
    Answer,
    AutoApproveInterviewer,
    ConsoleInterviewer,
    Question,
)

MakeRequest = Callable[..., StageRequest]

REVIEW = """
digraph G {
    review [shape=hexagon, prompt="Ship it?"]
    ship [prompt="ship"]
    rework [prompt="rework"]
    review -> ship [label="approve"]
    review -> rework [label="reject"]
    review -> rework [label="reject"]
}
"""


class ScriptedInterviewer:
    """Answers with a fixed choice and records each question."""

    def __init__(self, choice: str) -> None:
        self.choice = choice
        self.questions: list[Question] = []

    def ask(self, question: Question) -> Answer:
        self.questions.append(question)
        return Answer(selected=self.choice, response=self.choice)


def _handler(services: HandlerServices, interviewer: object) -> HumanGateHandler:
    return HumanGateHandler(dataclasses.replace(services, interviewer=interviewer))


class TestHumanGateHandler:
    def test_options_come_from_unique_edge_labels(self, services: HandlerServices, make_request: MakeRequest) -> None:
        interviewer = ScriptedInterviewer("reject")

        _handler(services, interviewer).execute(make_request(REVIEW, "review"))

        (question,) = interviewer.questions
        assert question.options == ("approve", "reject")
        assert question.prompt == "Ship it?"
        assert question.question_type is QuestionType.CHOICE

    def test_selection_drives_routing_label(self, services: HandlerServices, make_request: MakeRequest) -> None:
        result = _handler(services, ScriptedInterviewer("reject")).execute(make_request(REVIEW, "review"))

        assert result.status is StageStatus.SUCCESS
        assert result.preferred_label == "reject"
        assert result.context_updates["human.gate.selected"] == "reject"
        assert result.context_updates["human.gate.label"] == "reject"

    def test_auto_approve_picks_first_option(self, services: HandlerServices, make_request: MakeRequest) -> None:
        result = HumanGateHandler(services).execute(make_request(REVIEW, "review"))

        assert result.preferred_label == "approve"

    def test_default_attribute_wins_for_auto_approve(self, services: HandlerServices, make_request: MakeRequest) -> None:
        dot = REVIEW.replace('prompt="Ship it?"', 'prompt="Ship it?", default="reject"')

        result = HumanGateHandler(services).execute(make_request(dot, "review"))

        assert result.preferred_label == "reject"

    def test_explicit_options_override_labels(self, services: HandlerServices, make_request: MakeRequest) -> None:
        interviewer = ScriptedInterviewer("later")
        dot = REVIEW.replace('prompt="Ship it?"', 'prompt="Ship it?", options="now|later"')

        _handler(services, interviewer).execute(make_request(dot, "review"))

        assert interviewer.questions[0].options == ("now", "later")

    def test_writes_prompt_and_response(
        self, services: HandlerServices, make_request: MakeRequest, tmp_path: Path
    ) -> None:
        HumanGateHandler(services).execute(make_request(REVIEW, "review"))

        stage = tmp_path / "logs" / "review"
        assert (stage / "prompt.md").read_text() == "Ship it?\n- approve\n- reject\n"
        assert (stage / "response.md").read_text() == "approve\n"

    def test_freeform_records_response(self, services: HandlerServices, make_request: MakeRequest) -> None:
        dot = 'digraph G { ask [shape=hexagon, prompt="Notes?", question_type=freeform] }'

        result = HumanGateHandler(services).execute(make_request(dot, "ask"))

        assert result.context_updates["human.gate.response"] == DEFAULT_APPROVAL


class TestInterviewers:
    def test_auto_approve_without_options(self) -> None:
        answer = AutoApproveInterviewer().ask(Question(node_id="g", prompt="ok?", question_type=QuestionType.CHOICE))

        assert answer.selected == DEFAULT_APPROVAL

    def test_console_accepts_option_number(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(typer, "prompt", lambda *args, **kwargs: "2")
        question = Question(node_id="g", prompt="pick", question_type=QuestionType.CHOICE, options=("a", "b"))

        answer = ConsoleInterviewer().ask(question)

        assert answer == Answer(selected="b", response="2")

    def test_console_matches_label_case_insensitively(self, monkeypatch: pytest.MonkeyPatch) -> None:
        replies = iter(["nope", "B"])
        monkeypatch.setattr(typer, "prompt", lambda *args, **kwargs: next(replies))
        question = Question(node_id="g", prompt="pick", question_type=QuestionType.CHOICE, options=("a", "b"))

        assert ConsoleInterviewer().ask(question).selected == "b"

    def test_console_eof_is_execution_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def closed(*args: object, **kwargs: object) -> str:
            raise typer.Abort()

        monkeypatch.setattr(typer, "prompt", closed)
        question = Question(node_id="g", prompt="pick", question_type=QuestionType.CHOICE, options=("a",))

        with pytest.raises(ExecutionError, match="human gate 'g' received no answer"):
            ConsoleInterviewer().ask(question)
