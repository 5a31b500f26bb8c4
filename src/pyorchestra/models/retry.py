"""
Retry policy configuration for step execution.

Design Pattern: Strategy Pattern
RetryPolicy encapsulates how often and how patiently a step executor is
re-invoked after it raises, without the step runner knowing the details.

Only executor faults are retried. A step that returns
``ActionResult(success=False)`` has reported a business outcome and is
recorded as-is.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, cast


@dataclass(frozen=True)
class RetryPolicy:
    """
    Configuration for step retry behavior.

    Examples:
        # Simple: just specify max attempts (uses standard delays)
        policy = RetryPolicy.with_max_attempts(3)

        # Named policy: predefined sensible defaults
        policy = RetryPolicy.STANDARD

        # Fixed delay between attempts
        policy = RetryPolicy.fixed(retry_count=2, delay_seconds=5)

        # Custom policy: full control
        policy = RetryPolicy(
            max_attempts=5,
            initial_delay_ms=1000,
            max_delay_ms=30000,
            backoff_multiplier=2.0
        )
    """

    max_attempts: int
    """Maximum number of attempts (including the first try).

    For example, max_attempts = 3 means:
    - Attempt 1: immediate (first try)
    - Attempt 2: after initial_delay
    - Attempt 3: after initial_delay * backoff_multiplier
    """

    initial_delay_ms: int
    """Initial delay before the first retry in milliseconds."""

    max_delay_ms: int
    """Maximum delay between retries in milliseconds (caps exponential backoff)."""

    backoff_multiplier: float
    """Multiplier for exponential backoff.

    Each retry delay is calculated as:
    min(initial_delay * backoff_multiplier^(attempt-1), max_delay)
    """

    if TYPE_CHECKING:
        NONE: RetryPolicy
        STANDARD: RetryPolicy
        AGGRESSIVE: RetryPolicy
    else:
        NONE = cast("RetryPolicy", None)
        STANDARD = cast("RetryPolicy", None)
        AGGRESSIVE = cast("RetryPolicy", None)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("retry delays must not be negative")

    @classmethod
    def with_max_attempts(cls, max_attempts: int) -> RetryPolicy:
        """
        Create a policy with custom max_attempts (uses standard delays).

        Args:
            max_attempts: Maximum number of attempts

        Returns:
            RetryPolicy with standard delays
        """
        return cls(
            max_attempts=max_attempts,
            initial_delay_ms=1000,
            max_delay_ms=30000,
            backoff_multiplier=2.0,
        )

    @classmethod
    def fixed(cls, retry_count: int, delay_seconds: float) -> RetryPolicy:
        """
        Create a policy that retries ``retry_count`` times with a constant delay.

        This mirrors the per-step ``retry_count``/``retry_delay_seconds`` pair
        that workflow authors usually think in.

        Args:
            retry_count: Number of retries after the first attempt
            delay_seconds: Delay between attempts in seconds
        """
        delay_ms = int(delay_seconds * 1000)
        return cls(
            max_attempts=retry_count + 1,
            initial_delay_ms=delay_ms,
            max_delay_ms=delay_ms,
            backoff_multiplier=1.0,
        )

    def delay_for_attempt(self, attempt: int) -> int | None:
        """
        Calculate the delay before the next retry attempt.

        Args:
            attempt: The attempt that just failed (1-indexed)

        Returns:
            Delay in milliseconds before the next retry, or None if no more retries.

        Example:
            policy = RetryPolicy.STANDARD
            delay1 = policy.delay_for_attempt(1)  # Returns 1000 (1s)
            delay2 = policy.delay_for_attempt(2)  # Returns 2000 (2s)
            delay3 = policy.delay_for_attempt(3)  # Returns None (max attempts)
        """
        if attempt >= self.max_attempts:
            return None

        # attempt=1 (first retry): multiplier^0 = 1 → initial_delay
        exponent = attempt - 1
        delay_ms = self.initial_delay_ms * (self.backoff_multiplier**exponent)

        return int(min(delay_ms, self.max_delay_ms))

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Decide whether ``error`` raised on ``attempt`` deserves another try."""
        if attempt >= self.max_attempts:
            return False
        if isinstance(error, RetryableError):
            return error.is_retryable()
        return True

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_attempts={self.max_attempts}, "
            f"initial_delay_ms={self.initial_delay_ms}, "
            f"max_delay_ms={self.max_delay_ms}, "
            f"backoff_multiplier={self.backoff_multiplier})"
        )


RetryPolicy.NONE = RetryPolicy(
    max_attempts=1, initial_delay_ms=0, max_delay_ms=0, backoff_multiplier=1.0
)

RetryPolicy.STANDARD = RetryPolicy(
    max_attempts=3,
    initial_delay_ms=1000,  # 1 second
    max_delay_ms=30000,  # 30 seconds
    backoff_multiplier=2.0,
)

RetryPolicy.AGGRESSIVE = RetryPolicy(
    max_attempts=10,
    initial_delay_ms=100,  # 100 milliseconds
    max_delay_ms=10000,  # 10 seconds
    backoff_multiplier=1.5,
)


class RetryableError(Exception):
    """
    Base class for executor errors that can say whether they should be retried.

    Example:
        class AgentUnavailable(RetryableError):
            def __init__(self, message: str, is_retryable: bool = True):
                super().__init__(message)
                self._retryable = is_retryable

            def is_retryable(self) -> bool:
                return self._retryable

        # Transient - the step runner tries again per the step's RetryPolicy
        raise AgentUnavailable("agent pool exhausted")

        # Permanent - recorded immediately as STEP_ERROR
        raise AgentUnavailable("agent rejected input", is_retryable=False)

    Exceptions that do not derive from RetryableError are treated as
    retryable whenever the step has a retry policy.
    """

    def is_retryable(self) -> bool:
        """Return True if the failure is transient."""
        return True
