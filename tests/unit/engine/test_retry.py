# tests/unit/engine/test_retry.py
"""Tests for RetryManager."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from attractor.core.config import RetrySettings
from attractor.engine.retry import MaxRetriesExceeded, RetryConfig, RetryManager


class TestRetryManager:
    """Retry logic with tenacity."""

    def test_retry_on_retryable_error(self) -> None:
        sleeps: list[float] = []
        manager = RetryManager(RetryConfig(max_attempts=3, base_delay=0.5), sleep=sleeps.append)

        attempts: list[int] = []

        def flaky_operation(attempt: int) -> str:
            attempts.append(attempt)
            if attempt < 3:
                raise ValueError("Transient error")
            return "success"

        result = manager.execute_with_retry(flaky_operation, is_retryable=lambda e: isinstance(e, ValueError))

        assert result == "success"
        assert attempts == [1, 2, 3]
        assert sleeps == [0.5, 1.0]

    def test_no_retry_on_non_retryable(self) -> None:
        calls = 0

        def failing_operation(attempt: int) -> None:
            nonlocal calls
            calls += 1
            raise TypeError("Not retryable")

        manager = RetryManager(RetryConfig(max_attempts=3), sleep=lambda _: None)
        with pytest.raises(TypeError):
            manager.execute_with_retry(failing_operation, is_retryable=lambda e: isinstance(e, ValueError))

        assert calls == 1

    def test_max_attempts_exceeded(self) -> None:
        manager = RetryManager(RetryConfig(max_attempts=2, base_delay=0.01), sleep=lambda _: None)

        def always_fails(attempt: int) -> None:
            raise ValueError(f"Always fails ({attempt})")

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            manager.execute_with_retry(always_fails, is_retryable=lambda e: isinstance(e, ValueError))

        assert exc_info.value.attempts == 2
        assert str(exc_info.value.last_error) == "Always fails (2)"

    def test_on_retry_called_only_before_another_attempt(self) -> None:
        manager = RetryManager(RetryConfig(max_attempts=3, base_delay=0.01), sleep=lambda _: None)
        retries: list[tuple[int, str]] = []

        def always_fails(attempt: int) -> None:
            raise ValueError("boom")

        with pytest.raises(MaxRetriesExceeded):
            manager.execute_with_retry(
                always_fails,
                is_retryable=lambda e: isinstance(e, ValueError),
                on_retry=lambda attempt, error: retries.append((attempt, str(error))),
            )

        assert retries == [(1, "boom"), (2, "boom")]

    def test_delays_are_capped(self) -> None:
        sleeps: list[float] = []
        manager = RetryManager(RetryConfig(max_attempts=5, base_delay=1.0, max_delay=3.0), sleep=sleeps.append)

        def always_fails(attempt: int) -> None:
            raise ValueError("boom")

        with pytest.raises(MaxRetriesExceeded):
            manager.execute_with_retry(always_fails, is_retryable=lambda e: True)

        assert sleeps == [1.0, 2.0, 3.0, 3.0]

    def test_single_attempt_never_sleeps(self) -> None:
        sleeps: list[float] = []
        manager = RetryManager(RetryConfig(max_attempts=1), sleep=sleeps.append)

        def fails_once(attempt: int) -> None:
            raise ValueError("x")

        with pytest.raises(MaxRetriesExceeded):
            manager.execute_with_retry(fails_once, is_retryable=lambda e: True)

        assert sleeps == []

    @given(
        attempts=st.integers(min_value=2, max_value=8),
        base=st.floats(min_value=0.001, max_value=5.0),
        cap=st.floats(min_value=0.001, max_value=30.0),
    )
    def test_delays_never_decrease_and_respect_cap(self, attempts: int, base: float, cap: float) -> None:
        sleeps: list[float] = []
        manager = RetryManager(RetryConfig(max_attempts=attempts, base_delay=base, max_delay=cap), sleep=sleeps.append)

        def always_fails(attempt: int) -> None:
            raise ValueError("boom")

        with pytest.raises(MaxRetriesExceeded):
            manager.execute_with_retry(always_fails, is_retryable=lambda e: True)

        assert len(sleeps) == attempts - 1
        assert all(delay <= cap for delay in sleeps)
        assert sleeps == sorted(sleeps)


class TestRetryConfig:
    def test_for_node_adds_first_attempt(self) -> None:
        config = RetryConfig.for_node(2, RetrySettings(initial_delay_seconds=0.5, max_delay_seconds=4.0))

        assert config.max_attempts == 3
        assert config.base_delay == 0.5
        assert config.max_delay == 4.0

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError, match="max_attempts must be >= 1"):
            RetryConfig(max_attempts=0)
