# src/attractor/engine/interviewer.py
"""Interviewers answer human-gate questions.

The engine never talks to a terminal directly: the CLI chooses an
interviewer (console or auto-approve) and passes it in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import typer

from attractor.contracts import ExecutionError, QuestionType

DEFAULT_APPROVAL = "APPROVE"


@dataclass(frozen=True, slots=True)
class Question:
    """A human-gate question.

    Attributes:
        node_id: Gate node asking the question.
        prompt: Text shown to the human.
        question_type: Multiple choice or free text.
        options: Choice labels in presentation order (may be empty for freeform).
        default: Preselected answer, if any.
    """

    node_id: str
    prompt: str
    question_type: QuestionType
    options: tuple[str, ...] = ()
    default: str | None = None

    @property
    def default_choice(self) -> str:
        if self.default:
            return self.default
        if self.options:
            return self.options[0]
        return DEFAULT_APPROVAL


@dataclass(frozen=True, slots=True)
class Answer:
    """The human's answer.

    ``selected`` is the routing key (an option label for choice
    questions); ``response`` is the raw text entered.
    """

    selected: str
    response: str


class Interviewer(Protocol):
    def ask(self, question: Question) -> Answer: ...


class AutoApproveInterviewer:
    """Answers every question with its default choice (``--auto-approve``)."""

    def ask(self, question: Question) -> Answer:
        choice = question.default_choice
        return Answer(selected=choice, response=choice)


class ConsoleInterviewer:
    """Asks on the terminal via typer prompts.

    A closed stdin (EOF, Ctrl-D) is reported as an ExecutionError so the
    run stops with a resumable checkpoint.
    """

    def ask(self, question: Question) -> Answer:
        try:
            return self._ask(question)
        except typer.Abort as exc:
            raise ExecutionError(f"human gate '{question.node_id}' received no answer", node_id=question.node_id) from exc

    def _ask(self, question: Question) -> Answer:
        typer.secho(f"\n[{question.node_id}] {question.prompt}", bold=True, err=True)
        if question.question_type is QuestionType.FREEFORM:
            text: str = typer.prompt("Response", default=question.default_choice, err=True)
            return Answer(selected=question.default_choice, response=text)

        for index, option in enumerate(question.options, start=1):
            typer.echo(f"  {index}. {option}", err=True)
        while True:
            raw: str = typer.prompt("Choice", default=question.default_choice, err=True)
            selected = _match_option(raw, question.options)
            if selected is not None:
                return Answer(selected=selected, response=raw)
            typer.secho(f"Unknown choice {raw!r}", fg=typer.colors.YELLOW, err=True)


def _match_option(raw: str, options: tuple[str, ...]) -> str | None:
    text = raw.strip()
    if not options:
        return text or DEFAULT_APPROVAL
    if text.isdigit() and 1 <= int(text) <= len(options):
        return options[int(text) - 1]
    for option in options:
        if option.lower() == text.lower():
            return option
    return None
