# src/attractor/cli.py
"""attractor command line interface.

Single command: validate or run a DOT pipeline graph.

    attractor pipeline.dot --validate
    attractor pipeline.dot --simulate --auto-approve --logs runs/demo
    attractor pipeline.dot --resume runs/demo
"""

from __future__ import annotations

import signal
from datetime import UTC, datetime
from pathlib import Path
from types import FrameType

import typer
from pydantic import ValidationError

from attractor import __version__
from attractor.contracts import AttractorError, GraphValidationError, IncompatibleCheckpointError, ParseError
from attractor.core.config import AttractorSettings, load_settings
from attractor.core.dag import PipelineGraph, classify, load_graph_file, validate_graph

__all__ = ["app"]

DEFAULT_LOGS_PARENT = Path("attractor-runs")

app = typer.Typer(
    name="attractor",
    help="attractor: headless executor for DOT-defined agent pipelines.",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"attractor version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Raises:
        typer.Exit: If an explicit env_file doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)
    return load_dotenv(override=False)


def _fail(message: str) -> typer.Exit:
    typer.secho(message, fg=typer.colors.RED, err=True)
    return typer.Exit(1)


def _load_graph(path: Path) -> PipelineGraph:
    try:
        return load_graph_file(path)
    except ParseError as exc:
        raise _fail(f"ERROR parse: {exc}") from exc


def _load_run_settings(settings_path: Path | None) -> AttractorSettings:
    try:
        return load_settings(settings_path)
    except FileNotFoundError as exc:
        raise _fail(f"Error: {exc}") from exc
    except ValidationError as exc:
        lines = [f"  - {'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise _fail("Configuration errors:\n" + "\n".join(lines)) from exc


def _validate(path: Path) -> None:
    """Print the synopsis on stdout and diagnostics on stderr."""
    graph = _load_graph(path)
    try:
        report = validate_graph(graph)
    except GraphValidationError as exc:
        for violation in exc.violations:
            typer.echo(f"ERROR {exc.rule}: {violation}", err=True)
        typer.echo(f"SYNOPSIS: {classify(graph).value}")
        raise typer.Exit(1) from exc

    for warning in report.warnings:
        typer.echo(f"WARNING {warning.code}: {warning.message}", err=True)
    typer.echo(f"SYNOPSIS: {report.classification.value}")


def _default_logs_dir(graph: PipelineGraph) -> Path:
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    return DEFAULT_LOGS_PARENT / f"{graph.name}-{stamp}"


def _raise_keyboard_interrupt(signum: int, frame: FrameType | None) -> None:
    raise KeyboardInterrupt


def _execute(
    path: Path,
    *,
    logs: Path | None,
    resume: Path | None,
    simulate: bool,
    auto_approve: bool,
    quiet: bool,
    json_events: bool,
    settings_path: Path | None,
) -> None:
    from attractor.cli_formatters import create_console_formatters, create_json_formatters, subscribe_formatters
    from attractor.core.events import EventBus
    from attractor.engine.executor import PipelineExecutor
    from attractor.engine.interviewer import AutoApproveInterviewer, ConsoleInterviewer, Interviewer
    from attractor.plugins.manager import PluginManager

    graph = _load_graph(path)
    try:
        validate_graph(graph)
    except GraphValidationError as exc:
        raise _fail(f"ERROR {exc.rule}: {'; '.join(exc.violations)}") from exc

    settings = _load_run_settings(settings_path)
    logs_root = resume or logs or _default_logs_dir(graph)

    plugins = PluginManager()
    plugins.register_builtin_plugins()
    backend_name = "simulated" if simulate else settings.llm.provider
    try:
        backend = plugins.get_llm_backend(backend_name, settings)
    except ValueError as exc:
        raise _fail(f"Error: {exc}") from exc

    interviewer: Interviewer = AutoApproveInterviewer() if auto_approve else ConsoleInterviewer()
    events = EventBus()
    if json_events:
        subscribe_formatters(events, create_json_formatters())
    elif not quiet:
        subscribe_formatters(events, create_console_formatters("Resume" if resume else "Run"))

    executor = PipelineExecutor(
        graph,
        logs_root=logs_root,
        settings=settings,
        llm_backend=backend,
        interviewer=interviewer,
        plugins=plugins,
        events=events,
        simulate=simulate,
    )

    previous_handler = signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)
    try:
        result = executor.run(resume=resume is not None)
    except IncompatibleCheckpointError as exc:
        raise _fail(f"Cannot resume {logs_root}: {exc}") from exc
    except KeyboardInterrupt as exc:
        raise _fail(f"Interrupted; resume with --resume {logs_root}") from exc
    finally:
        signal.signal(signal.SIGTERM, previous_handler)
        backend.close()

    if not result.succeeded:
        raise _fail(result.error or "run failed")


@app.command()
def main(
    graph: Path = typer.Argument(..., help="Pipeline graph (.dot file)."),
    validate: bool = typer.Option(False, "--validate", help="Validate and classify the graph, then exit."),
    simulate: bool = typer.Option(False, "--simulate", help="Use the deterministic offline LLM backend."),
    auto_approve: bool = typer.Option(False, "--auto-approve", help="Answer human gates with their default choice."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress progress output."),
    logs: Path | None = typer.Option(None, "--logs", help="Logs directory for a fresh run."),
    resume: Path | None = typer.Option(None, "--resume", help="Resume the run stored in this logs directory."),
    settings: Path | None = typer.Option(None, "--settings", "-s", help="Settings file (YAML, TOML or JSON)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose/debug logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Output structured JSON logs and JSON-lines run events."),
    no_dotenv: bool = typer.Option(False, "--no-dotenv", help="Skip loading .env file."),
    env_file: Path | None = typer.Option(None, "--env-file", help="Path to .env file (skips automatic search)."),
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Validate or execute a DOT pipeline graph."""
    from attractor.core.logging import configure_logging

    if verbose:
        log_level = "DEBUG"
    elif quiet:
        log_level = "WARNING"
    else:
        log_level = "INFO"
    configure_logging(json_output=json_logs, level=log_level)

    if not no_dotenv:
        _load_dotenv(env_file=env_file)

    if validate:
        _validate(graph)
        return

    try:
        _execute(
            graph,
            logs=logs,
            resume=resume,
            simulate=simulate,
            auto_approve=auto_approve,
            quiet=quiet,
            json_events=json_logs,
            settings_path=settings,
        )
    except AttractorError as exc:
        raise _fail(f"Error: {exc}") from exc
