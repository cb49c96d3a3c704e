# tests/unit/core/test_config.py
"""Tests for settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from attractor.core.config import AttractorSettings, RetrySettings, load_settings


class TestDefaults:
    def test_all_sections_have_defaults(self) -> None:
        settings = AttractorSettings()

        assert settings.retry.initial_delay_seconds == 1.0
        assert settings.concurrency.max_workers == 4
        assert settings.tools.shell == "bash"
        assert settings.tools.default_timeout_seconds is None
        assert settings.fidelity.default_truncate_limit == 500
        assert settings.engine.default_max_cycles == 1000

    def test_settings_are_frozen(self) -> None:
        settings = AttractorSettings()

        with pytest.raises(ValidationError):
            settings.retry.initial_delay_seconds = 5.0  # type: ignore[misc]

    def test_invalid_values_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RetrySettings(initial_delay_seconds=0)


class TestLoadSettings:
    def test_without_file_uses_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ATTRACTOR_RETRY__INITIAL_DELAY_SECONDS", raising=False)

        assert load_settings() == AttractorSettings()

    def test_toml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.toml"
        path.write_text("[retry]\ninitial_delay_seconds = 0.25\n\n[concurrency]\nmax_workers = 2\n")

        settings = load_settings(path)

        assert settings.retry.initial_delay_seconds == 0.25
        assert settings.concurrency.max_workers == 2
        assert settings.retry.max_delay_seconds == 60.0

    def test_environment_nested_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ATTRACTOR_ENGINE__MAX_STEPS", "75")

        assert load_settings().engine.max_steps == 75

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_settings(tmp_path / "absent.toml")

    def test_invalid_file_value(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.toml"
        path.write_text("[concurrency]\nmax_workers = 0\n")

        with pytest.raises(ValidationError):
            load_settings(path)
