# src/minutebook/engine/retry.py
"""RetryManager: Retry logic with tenacity integration.

Provides bounded retry behavior for the record creation path:
- Exponential backoff with jitter
- Configurable max attempts (a hard ceiling)
- Retryable error filtering
- A per-retry callback carrying the attempt number and the chosen delay

The creation path is user-interactive, so the defaults are small: five
attempts, delays starting at 150ms and capped at two seconds.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.wait import wait_base

if TYPE_CHECKING:
    from minutebook.core.config import RetrySettings

T = TypeVar("T")


class MaxRetriesExceeded(Exception):
    """Raised when max retry attempts are exceeded."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries ({attempts}) exceeded: {last_error}")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    max_attempts is the TOTAL number of tries, not the number of retries.
    So max_attempts=5 means: try, then retry up to four times.

    The delay before retry k (k = 1 for the first retry) is
    min(max_delay, base_delay * exponential_base ** (k - 1) + U(0, jitter)).

    jitter is bounded by the first backoff step, base_delay * (exponential_base - 1),
    so a later delay is never shorter than an earlier one.
    """

    max_attempts: int = 5
    base_delay: float = 0.15  # seconds
    max_delay: float = 2.0  # seconds
    jitter: float = 0.15  # seconds
    exponential_base: float = 2.0  # backoff multiplier

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay <= 0 or self.max_delay <= 0:
            raise ValueError("delays must be > 0")
        if self.jitter < 0:
            raise ValueError("jitter must be >= 0")
        if self.exponential_base <= 1.0:
            raise ValueError("exponential_base must be > 1.0")
        if self.jitter > self.base_delay * (self.exponential_base - 1):
            raise ValueError("jitter must be <= base_delay * (exponential_base - 1)")

    @classmethod
    def no_retry(cls) -> "RetryConfig":
        """Factory for no-retry configuration (single attempt)."""
        return cls(max_attempts=1)

    @classmethod
    def from_settings(cls, settings: "RetrySettings") -> "RetryConfig":
        """Factory from RetrySettings config model.

        Args:
            settings: Validated Pydantic settings model

        Returns:
            RetryConfig with mapped values
        """
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.initial_delay_seconds,
            max_delay=settings.max_delay_seconds,
            jitter=settings.jitter_seconds,
            exponential_base=settings.exponential_base,
        )

    def exponential_delay(self, retry_number: int) -> float:
        """Deterministic part of the delay before retry `retry_number` (1-based), capped."""
        if retry_number < 1:
            raise ValueError("retry_number must be >= 1")
        try:
            return min(self.max_delay, self.base_delay * self.exponential_base ** (retry_number - 1))
        except OverflowError:
            return self.max_delay

    def wait_strategy(self) -> wait_base:
        """tenacity wait implementing the delay formula above."""
        exponential = wait_exponential(multiplier=self.base_delay, exp_base=self.exponential_base, max=self.max_delay)
        return _CappedWait(exponential + wait_random(0, self.jitter), self.max_delay)


class _CappedWait(wait_base):
    """Cap another wait strategy at `maximum` seconds (jitter included)."""

    def __init__(self, wait: wait_base, maximum: float) -> None:
        self.wait = wait
        self.maximum = maximum

    def __call__(self, retry_state: RetryCallState) -> float:
        return min(self.maximum, self.wait(retry_state))


class RetryManager:
    """Manages retry logic for store calls.

    Uses tenacity for exponential backoff with jitter.

    Example:
        manager = RetryManager(RetryConfig(max_attempts=5))

        result = manager.execute_with_retry(
            operation=lambda: gateway.invoke(name, owner, payload),
            is_retryable=lambda e: isinstance(e, TransientConflict),
            on_retry=lambda attempt, error, delay: log.info("retry", attempt=attempt, delay=delay),
        )
    """

    def __init__(self, config: RetryConfig, *, sleep: Callable[[float], None] | None = None) -> None:
        """Initialize with config.

        Args:
            config: Retry configuration
            sleep: Sleep function (injectable for testing; defaults to time.sleep)
        """
        self._config = config
        self._sleep = sleep

    @property
    def config(self) -> RetryConfig:
        return self._config

    def execute_with_retry(
        self,
        operation: Callable[[], T],
        *,
        is_retryable: Callable[[BaseException], bool],
        on_retry: Callable[[int, BaseException, float], None] | None = None,
    ) -> T:
        """Execute operation with retry logic.

        Args:
            operation: Operation to execute
            is_retryable: Function to check if error is retryable
            on_retry: Optional callback before each backoff sleep
                (attempt that failed, its error, seconds about to be slept).
                Never called for the final attempt.

        Returns:
            Result of operation

        Raises:
            MaxRetriesExceeded: If max attempts exceeded
            Exception: If non-retryable error occurs
        """
        attempt = 0
        last_error: BaseException | None = None

        def before_sleep(retry_state: RetryCallState) -> None:
            if on_retry is None or retry_state.outcome is None or retry_state.next_action is None:
                return
            error = retry_state.outcome.exception()
            if error is not None:
                on_retry(retry_state.attempt_number, error, retry_state.next_action.sleep)

        retrying_kwargs: dict[str, Any] = {}
        if self._sleep is not None:
            retrying_kwargs["sleep"] = self._sleep

        try:
            for attempt_state in Retrying(
                stop=stop_after_attempt(self._config.max_attempts),
                wait=self._config.wait_strategy(),
                retry=retry_if_exception(is_retryable),
                before_sleep=before_sleep,
                reraise=False,  # We catch RetryError and convert to MaxRetriesExceeded
                **retrying_kwargs,
            ):
                with attempt_state:
                    attempt = attempt_state.retry_state.attempt_number
                    try:
                        return operation()
                    except Exception as e:
                        last_error = e
                        raise

        except RetryError as e:
            # Retries exhausted - wrap in MaxRetriesExceeded
            # last_error is always set because RetryError means at least one attempt failed
            final_error = last_error or e.last_attempt.exception()
            assert final_error is not None, "RetryError without exception is impossible"
            raise MaxRetriesExceeded(attempt, final_error) from e

        # Should not reach here - Retrying always returns or raises
        raise RuntimeError("Unexpected state in retry loop")  # pragma: no cover
