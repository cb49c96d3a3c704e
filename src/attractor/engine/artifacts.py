# src/attractor/engine/artifacts.py
"""Per-node stage directories under the logs root.

Every executed node owns ``<logs_root>/<node_id>/``. Handlers write
prompt/response/status files through the sink rather than touching the
filesystem directly, so tests can point a run at a temp directory.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

from attractor.core.checkpoint.manager import write_json_atomic

STATUS_FILENAME = "status.json"


class StageArtifactSink(Protocol):
    """Where handlers put the files of one stage."""

    def stage_dir(self, node_id: str) -> Path: ...

    def write_text(self, node_id: str, name: str, content: str) -> Path: ...

    def write_json(self, node_id: str, name: str, data: Any) -> Path: ...

    @property
    def logs_root(self) -> Path: ...

    def read_text(self, node_id: str, name: str) -> str | None: ...

    def remove(self, node_id: str, name: str) -> None: ...


class FilesystemArtifactSink:
    """Stage directories rooted at a run's logs directory."""

    def __init__(self, logs_root: Path) -> None:
        self._root = logs_root

    @property
    def logs_root(self) -> Path:
        return self._root

    def stage_dir(self, node_id: str) -> Path:
        path = self._root / node_id
        path.mkdir(parents=True, exist_ok=True)
        return path

    def write_text(self, node_id: str, name: str, content: str) -> Path:
        path = self.stage_dir(node_id) / name
        path.write_text(content, encoding="utf-8")
        return path

    def write_json(self, node_id: str, name: str, data: Any) -> Path:
        path = self.stage_dir(node_id) / name
        write_json_atomic(path, data)
        return path

    def read_text(self, node_id: str, name: str) -> str | None:
        """Read a stage file, None when absent.

        Tools write these files, so undecodable bytes are replaced
        rather than raised; a garbled status.json then fails JSON parsing.
        """
        path = self._root / node_id / name
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8", errors="replace")

    def remove(self, node_id: str, name: str) -> None:
        (self._root / node_id / name).unlink(missing_ok=True)


def read_json_object(text: str) -> dict[str, Any] | None:
    """Parse a JSON document, returning None unless it is an object."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
