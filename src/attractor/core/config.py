# src/attractor/core/config.py
"""Configuration schema and loading for attractor.

Settings are validated pydantic models, frozen after construction.
Sources, highest priority first:

1. Environment variables (ATTRACTOR_*, ``__`` for nesting,
   e.g. ATTRACTOR_RETRY__INITIAL_DELAY_SECONDS=0.5)
2. Optional settings file (YAML/TOML/JSON, via Dynaconf)
3. Defaults from the schema below
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class RetrySettings(BaseModel):
    """Backoff between attempts of a node with max_retries > 0."""

    model_config = {"frozen": True}

    initial_delay_seconds: float = Field(default=1.0, gt=0, description="Delay before the first retry")
    max_delay_seconds: float = Field(default=60.0, gt=0, description="Upper bound for any single delay")
    exponential_base: float = Field(default=2.0, ge=1.0, description="Backoff multiplier per retry")


class ConcurrencySettings(BaseModel):
    """Parallel branch execution."""

    model_config = {"frozen": True}

    max_workers: int = Field(default=4, gt=0, description="Maximum concurrently running branches")


class LLMSettings(BaseModel):
    """Live LLM backend used when not simulating."""

    model_config = {"frozen": True}

    provider: str = Field(default="openrouter", description="Backend name")
    model: str = Field(default="anthropic/claude-sonnet-4", description="Default model id")
    base_url: str = Field(default="https://openrouter.ai/api/v1", description="OpenAI-compatible API root")
    api_key_env: str = Field(default="OPENROUTER_API_KEY", description="Environment variable holding the API key")
    timeout_seconds: float = Field(default=300.0, gt=0, description="HTTP timeout when the node sets none")


class ToolSettings(BaseModel):
    """Shell tool execution."""

    model_config = {"frozen": True}

    shell: str = Field(default="bash", description="Shell used to run tool commands and hooks")
    default_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Timeout for tool nodes without a timeout attribute (None = unbounded)",
    )


class FidelitySettings(BaseModel):
    """Context projection across edges."""

    model_config = {"frozen": True}

    default_truncate_limit: int = Field(default=500, gt=0, description="Characters kept by 'truncate' without a limit")


class EngineSettings(BaseModel):
    """Run-loop guards."""

    model_config = {"frozen": True}

    max_steps: int = Field(default=1000, gt=0, description="Maximum node executions along the main path")
    default_max_cycles: int = Field(default=1000, gt=0, description="Manager loop bound without max_cycles")


class AttractorSettings(BaseModel):
    """Top-level configuration. All sections have defaults."""

    model_config = {"frozen": True}

    retry: RetrySettings = Field(default_factory=RetrySettings)
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)
    fidelity: FidelitySettings = Field(default_factory=FidelitySettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)


_DYNACONF_INTERNAL_KEYS = frozenset({"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"})


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path | None = None) -> AttractorSettings:
    """Load settings from an optional file with environment overrides.

    Args:
        config_path: Settings file, or None for environment and defaults only.

    Returns:
        Validated AttractorSettings instance

    Raises:
        pydantic.ValidationError: If configuration fails validation
        FileNotFoundError: If config_path is given but doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files.
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="ATTRACTOR",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    raw_config = {
        k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in _DYNACONF_INTERNAL_KEYS
    }
    known = set(AttractorSettings.model_fields)
    return AttractorSettings(**{k: v for k, v in raw_config.items() if k in known})
