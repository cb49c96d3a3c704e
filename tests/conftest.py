# tests/conftest.py
"""Shared test fixtures.

Fixtures build the pieces a run needs without touching the network:
fast retry settings, a recording sleep, the simulated LLM backend and
an auto-approving interviewer. Graphs are written as DOT text.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from attractor.core.config import AttractorSettings, RetrySettings
from attractor.core.dag import PipelineGraph, load_graph
from attractor.engine.artifacts import FilesystemArtifactSink
from attractor.engine.executor import PipelineExecutor
from attractor.engine.handlers import HandlerServices, StageRequest
from attractor.engine.interviewer import AutoApproveInterviewer, Interviewer
from attractor.plugins.llm import SimulatedLLMBackend
from attractor.plugins.llm.base import LLMBackend
from attractor.plugins.manager import PluginManager

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fast_settings() -> AttractorSettings:
    """Settings with millisecond backoff so retry tests stay fast."""
    return AttractorSettings(
        retry=RetrySettings(initial_delay_seconds=0.001, max_delay_seconds=0.01, exponential_base=2.0),
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Delays passed to the recording sleep."""
    return []


@pytest.fixture
def record_sleep(sleeps: list[float]) -> Callable[[float], None]:
    return sleeps.append


@pytest.fixture
def plugins() -> PluginManager:
    manager = PluginManager()
    manager.register_builtin_plugins()
    return manager


@pytest.fixture
def services(
    fast_settings: AttractorSettings,
    plugins: PluginManager,
    record_sleep: Callable[[float], None],
) -> HandlerServices:
    return HandlerServices(
        settings=fast_settings,
        plugins=plugins,
        llm_backend=SimulatedLLMBackend(),
        interviewer=AutoApproveInterviewer(),
        sleep=record_sleep,
    )


@pytest.fixture
def make_request(tmp_path: Path) -> Callable[..., StageRequest]:
    """Build a StageRequest for one node of a DOT graph.

    Usage:
        request = make_request(dot, "build", context={"k": "v"})
    """

    def _make(
        dot: str | PipelineGraph,
        node_id: str,
        *,
        context: Mapping[str, str] | None = None,
        outcomes: Mapping[str, Any] | None = None,
        loop_counters: dict[str, int] | None = None,
        attempt: int = 1,
    ) -> StageRequest:
        graph = load_graph(dot) if isinstance(dot, str) else dot
        return StageRequest(
            node=graph.node(node_id),
            graph=graph,
            context=dict(context or {}),
            attempt=attempt,
            visit=1,
            artifacts=FilesystemArtifactSink(tmp_path / "logs"),
            outcomes=dict(outcomes or {}),
            loop_counters=loop_counters if loop_counters is not None else {},
        )

    return _make


@pytest.fixture
def make_executor(
    tmp_path: Path,
    fast_settings: AttractorSettings,
    record_sleep: Callable[[float], None],
) -> Callable[..., PipelineExecutor]:
    """Build a PipelineExecutor over DOT text, logging under tmp_path/run.

    Usage:
        executor = make_executor(dot)
        result = executor.run()
    """

    def _make(
        dot: str,
        *,
        logs_root: Path | None = None,
        interviewer: Interviewer | None = None,
        llm_backend: LLMBackend | None = None,
        settings: AttractorSettings | None = None,
    ) -> PipelineExecutor:
        return PipelineExecutor(
            load_graph(dot),
            logs_root=logs_root or tmp_path / "run",
            settings=settings or fast_settings,
            llm_backend=llm_backend or SimulatedLLMBackend(),
            interviewer=interviewer or AutoApproveInterviewer(),
            sleep=record_sleep,
            simulate=True,
        )

    return _make
