# src/attractor/engine/shell.py
"""Shell command runner shared by tool nodes, manager cycles and hooks.

Each command runs in its own session (process group) so a timeout or an
engine interruption kills the command together with everything it
spawned. Commands started on parallel branch threads are tracked in
``RUNNING_COMMANDS`` so the thread that receives the interrupt can tear
them down too.
"""

from __future__ import annotations

import os
import signal
import subprocess
import threading
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from attractor.contracts import ExecutionError
from attractor.core.logging import get_logger

logger = get_logger(__name__)

# Grace period between SIGTERM and SIGKILL when tearing a group down.
_TERMINATE_GRACE_SECONDS = 2.0


class CommandCancelledError(ExecutionError):
    """A shell command was killed (or refused) because the engine is shutting down."""


@dataclass(frozen=True, slots=True)
class ShellResult:
    """Outcome of one shell invocation.

    Attributes:
        exit_code: Process return code; None when killed on timeout.
        stdout: Captured standard output (decoded, errors replaced).
        stderr: Captured standard error.
        timed_out: True when the timeout elapsed before exit.
        duration_seconds: Wall-clock run time.
    """

    exit_code: int | None
    stdout: str
    stderr: str
    timed_out: bool
    duration_seconds: float

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.exit_code == 0

    @property
    def combined_output(self) -> str:
        return self.stdout + self.stderr


def _kill_group(process: subprocess.Popen[bytes]) -> None:
    try:
        pgid = os.getpgid(process.pid)
    except ProcessLookupError:
        return
    for sig in (signal.SIGTERM, signal.SIGKILL):
        try:
            os.killpg(pgid, sig)
        except ProcessLookupError:
            return
        try:
            process.wait(timeout=_TERMINATE_GRACE_SECONDS)
            return
        except subprocess.TimeoutExpired:
            continue


class CommandRegistry:
    """Process groups of the shell commands currently running, across threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._processes: set[subprocess.Popen[bytes]] = set()
        self._cancelled = threading.Event()

    @property
    def cancelling(self) -> bool:
        return self._cancelled.is_set()

    def register(self, process: subprocess.Popen[bytes]) -> bool:
        """Track ``process``; False if a cancellation is in progress."""
        with self._lock:
            if self._cancelled.is_set():
                return False
            self._processes.add(process)
            return True

    def unregister(self, process: subprocess.Popen[bytes]) -> None:
        with self._lock:
            self._processes.discard(process)

    def __len__(self) -> int:
        with self._lock:
            return len(self._processes)

    @contextmanager
    def cancelled(self) -> Iterator[None]:
        """Kill every tracked group and refuse new commands until the block exits.

        Example:
            with RUNNING_COMMANDS.cancelled():
                pool.shutdown(wait=True, cancel_futures=True)
        """
        with self._lock:
            self._cancelled.set()
            processes = list(self._processes)
        if processes:
            logger.warning("Killing running shell commands", count=len(processes))
        for process in processes:
            _kill_group(process)
        try:
            yield
        finally:
            self._cancelled.clear()


RUNNING_COMMANDS = CommandRegistry()


def run_shell(
    command: str,
    *,
    shell: str,
    cwd: Path,
    env: Mapping[str, str],
    timeout: float | None = None,
    registry: CommandRegistry = RUNNING_COMMANDS,
) -> ShellResult:
    """Run ``command`` with ``shell -c`` and capture its output.

    Args:
        command: Command line passed to the shell.
        shell: Shell executable (e.g. ``bash``).
        cwd: Working directory, created if missing.
        env: Extra environment merged over the engine's environment.
        timeout: Seconds before the process group is killed, None for unbounded.
        registry: Where the running process group is tracked.

    Returns:
        ShellResult describing how the command ended.

    Raises:
        OSError: If the shell cannot be started.
        CommandCancelledError: If the registry was cancelled before or
            while the command ran.
        KeyboardInterrupt: Re-raised after killing the process group.
    """
    if registry.cancelling:
        raise CommandCancelledError(f"not starting {command!r}: engine is shutting down")
    cwd.mkdir(parents=True, exist_ok=True)
    started = time.monotonic()
    process = subprocess.Popen(
        [shell, "-c", command],
        cwd=cwd,
        env={**os.environ, **env},
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        start_new_session=True,
    )
    if not registry.register(process):
        _kill_group(process)
        process.communicate()
        raise CommandCancelledError(f"not starting {command!r}: engine is shutting down")

    timed_out = False
    try:
        stdout, stderr = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        logger.warning("Shell command timed out", command=command, timeout_seconds=timeout)
        _kill_group(process)
        stdout, stderr = process.communicate()
    except BaseException:
        _kill_group(process)
        raise
    finally:
        registry.unregister(process)

    if registry.cancelling:
        raise CommandCancelledError(f"command {command!r} killed: engine is shutting down")

    return ShellResult(
        exit_code=None if timed_out else process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        timed_out=timed_out,
        duration_seconds=time.monotonic() - started,
    )
