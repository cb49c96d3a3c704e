# src/attractor/core/checkpoint/manager.py
"""CheckpointManager: atomic persistence of run state under a logs root.

Layout::

    <logs_root>/manifest.json
    <logs_root>/checkpoint.json          cumulative run state (resume entry point)
    <logs_root>/restart-<n>/checkpoint.json   state of loop-restart cycle n

Every write goes to a temp file in the same directory followed by
os.replace, so readers (and a resume after SIGKILL) see either the old
or the new document, never a torn one.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from attractor.contracts import CHECKPOINT_FORMAT_VERSION, Checkpoint, IncompatibleCheckpointError, Manifest
from attractor.core.logging import get_logger

logger = get_logger(__name__)

CHECKPOINT_FILENAME = "checkpoint.json"
MANIFEST_FILENAME = "manifest.json"


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to ``path`` via temp file + fsync + os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, ensure_ascii=False)
            handle.write("\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class CheckpointManager:
    """Reads and writes checkpoint.json and manifest.json for one run.

    Writes are serialized with a lock because parallel branches record
    completions from worker threads.
    """

    def __init__(self, logs_root: Path) -> None:
        """Initialize with the run's logs directory.

        Args:
            logs_root: Directory holding manifest, checkpoint and stage dirs
        """
        self._root = logs_root
        self._lock = threading.Lock()

    @property
    def logs_root(self) -> Path:
        return self._root

    @property
    def checkpoint_path(self) -> Path:
        return self._root / CHECKPOINT_FILENAME

    @property
    def manifest_path(self) -> Path:
        return self._root / MANIFEST_FILENAME

    def restart_dir(self, restart_count: int) -> Path:
        return self._root / f"restart-{restart_count}"

    def write_manifest(self, manifest: Manifest) -> None:
        with self._lock:
            write_json_atomic(self.manifest_path, manifest.to_dict())

    def save(self, checkpoint: Checkpoint) -> None:
        """Persist the cumulative checkpoint used as the resume entry point."""
        payload = checkpoint.to_dict()
        with self._lock:
            write_json_atomic(self.checkpoint_path, payload)
        logger.debug(
            "Checkpoint saved",
            completed=len(checkpoint.completed_nodes),
            next_node=checkpoint.next_node,
            status=checkpoint.status.value,
        )

    def save_cycle(self, restart_count: int, checkpoint: Checkpoint) -> None:
        """Persist the snapshot of loop-restart cycle ``restart_count``."""
        with self._lock:
            write_json_atomic(self.restart_dir(restart_count) / CHECKPOINT_FILENAME, checkpoint.to_dict())

    def load(self) -> Checkpoint | None:
        """Load checkpoint.json.

        Returns:
            The checkpoint, or None if none has been written.

        Raises:
            IncompatibleCheckpointError: If the file is unreadable, not a
                checkpoint, or written by an incompatible format version.
        """
        path = self.checkpoint_path
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise IncompatibleCheckpointError(f"cannot read checkpoint {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise IncompatibleCheckpointError(f"checkpoint {path} is not a JSON object")

        version = data.get("format_version", CHECKPOINT_FORMAT_VERSION)
        if version != CHECKPOINT_FORMAT_VERSION:
            raise IncompatibleCheckpointError(
                f"checkpoint format version {version} is not supported "
                f"(expected {CHECKPOINT_FORMAT_VERSION}); start a fresh run"
            )
        try:
            return Checkpoint.from_dict(data)
        except (KeyError, ValueError, TypeError, AttributeError) as exc:
            raise IncompatibleCheckpointError(f"malformed checkpoint {path}: {exc!r}") from exc
