# tests/unit/engine/test_artifacts.py
"""Tests for stage directories."""

import json
from pathlib import Path

from attractor.engine.artifacts import FilesystemArtifactSink, read_json_object


class TestFilesystemArtifactSink:
    def test_stage_files_live_under_node_directory(self, tmp_path: Path) -> None:
        sink = FilesystemArtifactSink(tmp_path)

        text_path = sink.write_text("plan", "prompt.md", "hello\n")
        json_path = sink.write_json("plan", "context.json", {"k": "v"})

        assert text_path == tmp_path / "plan" / "prompt.md"
        assert sink.read_text("plan", "prompt.md") == "hello\n"
        assert json.loads(json_path.read_text()) == {"k": "v"}

    def test_read_missing_file(self, tmp_path: Path) -> None:
        assert FilesystemArtifactSink(tmp_path).read_text("plan", "status.json") is None

    def test_remove_is_idempotent(self, tmp_path: Path) -> None:
        sink = FilesystemArtifactSink(tmp_path)
        sink.write_text("run", "status.json", "{}")

        sink.remove("run", "status.json")
        sink.remove("run", "status.json")

        assert not (tmp_path / "run" / "status.json").exists()

    def test_undecodable_bytes_are_replaced(self, tmp_path: Path) -> None:
        (tmp_path / "run").mkdir()
        (tmp_path / "run" / "status.json").write_bytes(b"\xff{}")

        assert FilesystemArtifactSink(tmp_path).read_text("run", "status.json") == "�{}"


class TestReadJsonObject:
    def test_object(self) -> None:
        assert read_json_object('{"outcome": "success"}') == {"outcome": "success"}

    def test_non_object_or_invalid(self) -> None:
        assert read_json_object("[1]") is None
        assert read_json_object("not json") is None
