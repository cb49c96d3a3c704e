# src/attractor/cli_formatters.py
"""CLI event formatter factories for pipeline execution output.

Each factory returns a dict mapping event types to handler callables,
suitable for subscribing to an EventBus. Progress goes to stdout;
failures go to stderr.
"""

from __future__ import annotations

import json
from collections.abc import Callable

import typer

from attractor.contracts import (
    LoopRestarted,
    NodeCompleted,
    NodeRetrying,
    NodeSkipped,
    NodeStarted,
    ParallelCompleted,
    ParallelStarted,
    RunFinished,
    RunStarted,
    RunStatus,
    StageStatus,
)
from attractor.core.events import EventBusProtocol

_STATUS_SYMBOLS = {
    StageStatus.SUCCESS: "✓",
    StageStatus.PARTIAL_SUCCESS: "⚠",
    StageStatus.FAIL: "✗",
}


def _duration(seconds: float) -> str:
    return f"{seconds:.2f}s" if seconds < 60 else f"{seconds / 60:.1f}m"


def create_console_formatters(prefix: str = "Run") -> dict[type, Callable[..., None]]:
    """Create console formatters for human-readable CLI output.

    Args:
        prefix: Label for the summary line (e.g. "Run" or "Resume").
    """

    def _format_run_started(event: RunStarted) -> None:
        mode = "resuming" if event.resumed else "starting"
        typer.echo(f"[{event.classification.value}] {mode} '{event.name}' → {event.logs_root}")

    def _format_node_started(event: NodeStarted) -> None:
        visit = f" (visit {event.visit})" if event.visit > 1 else ""
        typer.echo(f"  → {event.node_id} [{event.kind}]{visit}")

    def _format_node_retrying(event: NodeRetrying) -> None:
        typer.secho(f"    ↻ attempt {event.attempt} failed: {event.reason}", fg=typer.colors.YELLOW)

    def _format_node_completed(event: NodeCompleted) -> None:
        symbol = _STATUS_SYMBOLS[event.status]
        notes = f": {event.notes}" if event.notes else ""
        typer.echo(f"    {symbol} {event.node_id} {event.status.value} in {_duration(event.duration_seconds)}{notes}")

    def _format_node_skipped(event: NodeSkipped) -> None:
        typer.echo(f"  ⤼ {event.node_id} (completed before resume)")

    def _format_parallel_started(event: ParallelStarted) -> None:
        typer.echo(f"  ⇉ {event.node_id}: {len(event.branches)} branches ({', '.join(event.branches)})")

    def _format_parallel_completed(event: ParallelCompleted) -> None:
        typer.echo(f"  ⇇ {event.node_id}: ✓{event.success_count} ✗{event.fail_count}")

    def _format_loop_restarted(event: LoopRestarted) -> None:
        typer.echo(f"  ⟲ restart {event.restart_count}: {event.edge_source} → {event.edge_target}")

    def _format_run_finished(event: RunFinished) -> None:
        symbol = "✓" if event.status is RunStatus.COMPLETED else "✗"
        typer.echo(
            f"\n{symbol} {prefix} {event.status.value.upper()}: "
            f"{event.completed_nodes} nodes completed | {_duration(event.duration_seconds)} total"
        )

    return {
        RunStarted: _format_run_started,
        NodeStarted: _format_node_started,
        NodeRetrying: _format_node_retrying,
        NodeCompleted: _format_node_completed,
        NodeSkipped: _format_node_skipped,
        ParallelStarted: _format_parallel_started,
        ParallelCompleted: _format_parallel_completed,
        LoopRestarted: _format_loop_restarted,
        RunFinished: _format_run_finished,
    }


def create_json_formatters() -> dict[type, Callable[..., None]]:
    """Create JSON-lines formatters for structured CLI output."""

    def _emit(payload: dict[str, object]) -> None:
        typer.echo(json.dumps(payload))

    def _format_run_started_json(event: RunStarted) -> None:
        _emit(
            {
                "event": "run_started",
                "name": event.name,
                "classification": event.classification.value,
                "logs_root": event.logs_root,
                "resumed": event.resumed,
            }
        )

    def _format_node_completed_json(event: NodeCompleted) -> None:
        _emit(
            {
                "event": "node_completed",
                "node_id": event.node_id,
                "status": event.status.value,
                "attempt": event.attempt,
                "notes": event.notes,
                "duration_seconds": event.duration_seconds,
            }
        )

    def _format_run_finished_json(event: RunFinished) -> None:
        _emit(
            {
                "event": "run_finished",
                "status": event.status.value,
                "completed_nodes": event.completed_nodes,
                "duration_seconds": event.duration_seconds,
                "error": event.error,
            }
        )

    return {
        RunStarted: _format_run_started_json,
        NodeCompleted: _format_node_completed_json,
        RunFinished: _format_run_finished_json,
    }


def subscribe_formatters(
    event_bus: EventBusProtocol,
    formatters: dict[type, Callable[..., None]],
) -> None:
    """Subscribe all formatters to the event bus."""
    for event_type, handler in formatters.items():
        event_bus.subscribe(event_type, handler)
