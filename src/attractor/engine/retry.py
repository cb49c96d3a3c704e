# src/attractor/engine/retry.py
"""RetryManager: node attempt retries with tenacity.

A node with ``max_retries=R`` gets up to R+1 attempts. Delays grow
exponentially from ``base_delay`` and are capped at ``max_delay``;
there is no jitter, so successive delays never decrease.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

if TYPE_CHECKING:
    from attractor.core.config import RetrySettings

T = TypeVar("T")


class MaxRetriesExceeded(Exception):
    """Raised when every allowed attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries ({attempts}) exceeded: {last_error}")


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Configuration for retry behavior.

    max_attempts is the TOTAL number of tries, not the number of retries.
    So max_attempts=3 means: try, retry, retry (3 total).
    """

    max_attempts: int = 1
    base_delay: float = 1.0  # seconds
    max_delay: float = 60.0  # seconds
    exponential_base: float = 2.0  # backoff multiplier

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    @classmethod
    def for_node(cls, max_retries: int, settings: RetrySettings) -> RetryConfig:
        """Factory from a node's max_retries and the backoff settings.

        Args:
            max_retries: Retries after the first attempt
            settings: Validated backoff settings

        Returns:
            RetryConfig with max_retries + 1 total attempts
        """
        return cls(
            max_attempts=max_retries + 1,
            base_delay=settings.initial_delay_seconds,
            max_delay=settings.max_delay_seconds,
            exponential_base=settings.exponential_base,
        )


class RetryManager:
    """Runs an operation under a RetryConfig.

    Example:
        manager = RetryManager(RetryConfig(max_attempts=3))

        result = manager.execute_with_retry(
            operation=run_attempt,
            is_retryable=lambda e: isinstance(e, AttemptFailed),
            on_retry=lambda attempt, error: log_retry(attempt, error),
        )
    """

    def __init__(self, config: RetryConfig, *, sleep: Callable[[float], None] = time.sleep) -> None:
        """Initialize with config.

        Args:
            config: Retry configuration
            sleep: Sleep function (tests pass a recorder)
        """
        self._config = config
        self._sleep = sleep

    def execute_with_retry(
        self,
        operation: Callable[[int], T],
        *,
        is_retryable: Callable[[BaseException], bool],
        on_retry: Callable[[int, BaseException], None] | None = None,
    ) -> T:
        """Execute operation with retry logic.

        Args:
            operation: Called with the 1-based attempt number
            is_retryable: Function to check if error is retryable
            on_retry: Called (attempt, error) when a failed attempt will be retried

        Returns:
            Result of operation

        Raises:
            MaxRetriesExceeded: If max attempts exceeded
            Exception: If non-retryable error occurs
        """
        attempt = 0
        last_error: BaseException | None = None

        try:
            for attempt_state in Retrying(
                stop=stop_after_attempt(self._config.max_attempts),
                wait=wait_exponential(
                    multiplier=self._config.base_delay,
                    exp_base=self._config.exponential_base,
                    max=self._config.max_delay,
                ),
                retry=retry_if_exception(is_retryable),
                sleep=self._sleep,
                reraise=False,
            ):
                with attempt_state:
                    attempt = attempt_state.retry_state.attempt_number
                    try:
                        return operation(attempt)
                    except Exception as e:
                        last_error = e
                        if on_retry is not None and is_retryable(e) and attempt < self._config.max_attempts:
                            on_retry(attempt, e)
                        raise

        except RetryError as e:
            final_error = last_error or e.last_attempt.exception()
            assert final_error is not None, "RetryError without exception is impossible"
            raise MaxRetriesExceeded(attempt, final_error) from e

        raise RuntimeError("Unexpected state in retry loop")  # pragma: no cover
