"""
Retry orchestration with exponential backoff and jitter.

Runs a single-attempt operation repeatedly under a RetryPolicy, reporting
every scheduled retry to an observer.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from fetchguard.errors import (
    RETRYABLE_STATUS_CODES,
    ConfigError,
    FailureKind,
    classify_exception,
    is_retryable,
)
from fetchguard.resilience.jitter import backoff_delay
from fetchguard.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fetchguard.resilience.cancel import CancelToken

T = TypeVar("T")

logger = get_logger("fetchguard.retry")


@runtime_checkable
class RetryClassifier(Protocol):
    """Decides whether a failed attempt may be retried."""

    def is_retryable(self, error: BaseException) -> bool: ...


@runtime_checkable
class RetryObserver(Protocol):
    """Receives a notification before every backoff sleep."""

    def on_retry(self, error: BaseException, attempt: int, delay: float) -> None: ...


class DefaultRetryClassifier:
    """Retries transport, throttling and server failures.

    An error is retryable if its failure kind is retryable, or if its kind is
    unknown but it carries a status code from RETRYABLE_STATUS_CODES. FATAL
    is never retried, whatever the status code.
    """

    def is_retryable(self, error: BaseException) -> bool:
        kind = classify_exception(error)
        if is_retryable(kind):
            return True
        if kind is not FailureKind.UNKNOWN:
            return False
        return getattr(error, "status_code", None) in RETRYABLE_STATUS_CODES

    def __repr__(self) -> str:
        return "DefaultRetryClassifier()"


class NullObserver:
    """Observer that ignores notifications."""

    def on_retry(self, error: BaseException, attempt: int, delay: float) -> None:
        pass


@dataclass(frozen=True)
class RetryNotification:
    """One observed retry."""

    error: BaseException
    attempt: int
    delay: float


class RecordingObserver:
    """Observer that keeps every notification, mainly for tests and audits."""

    def __init__(self) -> None:
        self.notifications: list[RetryNotification] = []

    def on_retry(self, error: BaseException, attempt: int, delay: float) -> None:
        self.notifications.append(RetryNotification(error, attempt, delay))

    @property
    def delays(self) -> list[float]:
        return [n.delay for n in self.notifications]


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry policy.

    Attributes:
        max_attempts: Total attempts including the first (>= 1)
        base_delay_ms: Backoff for the first retry in milliseconds
        max_delay_ms: Ceiling for the exponential part in milliseconds
        jitter_fraction: Maximum relative jitter added on top of the backoff
        classifier: Decides which failures are retried
        throttle_floor_ms: Minimum backoff after rate limiting or
            anti-automation responses (0 disables the floor)
    """

    max_attempts: int = 3
    base_delay_ms: float = 1000.0
    max_delay_ms: float = 30000.0
    jitter_fraction: float = 0.3
    classifier: RetryClassifier = field(
        default_factory=DefaultRetryClassifier, compare=False
    )
    throttle_floor_ms: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be at least 1", field="max_attempts")
        if self.base_delay_ms < 0:
            raise ConfigError(
                "base_delay_ms must not be negative", field="base_delay_ms"
            )
        if self.max_delay_ms < self.base_delay_ms:
            raise ConfigError(
                "max_delay_ms must be at least base_delay_ms", field="max_delay_ms"
            )
        if not 0 <= self.jitter_fraction <= 1:
            raise ConfigError(
                "jitter_fraction must be in [0, 1]", field="jitter_fraction"
            )
        if self.throttle_floor_ms < 0:
            raise ConfigError(
                "throttle_floor_ms must not be negative", field="throttle_floor_ms"
            )

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        """Create a policy that makes exactly one attempt."""
        return cls(max_attempts=1)

    @classmethod
    def aggressive(cls) -> RetryPolicy:
        """Create a policy for heavily throttled upstreams."""
        return cls(
            max_attempts=5,
            base_delay_ms=2000.0,
            max_delay_ms=60000.0,
            jitter_fraction=0.3,
            throttle_floor_ms=5000.0,
        )


@dataclass
class RetryResult:
    """Result of a retry run.

    Attributes:
        success: Whether an attempt succeeded
        value: Value of the successful attempt
        error: Error of the last attempt (if failed)
        attempts: Number of attempts made
        delays: Backoff delays slept, in seconds
    """

    success: bool
    value: Any = None
    error: BaseException | None = None
    attempts: int = 0
    delays: list[float] = field(default_factory=list)

    @property
    def total_delay_ms(self) -> float:
        """Total backoff in milliseconds."""
        return sum(self.delays) * 1000


class RetryOrchestrator:
    """Runs an operation with exponential backoff between retryable failures.

    The operation receives the zero-based attempt index, so per-attempt
    state such as request identity can be rotated.

    Example:
        >>> orchestrator = RetryOrchestrator()
        >>> result = await orchestrator.run(fetch_once, RetryPolicy(max_attempts=3))
        >>> if not result.success:
        ...     print(f"Gave up after {result.attempts} attempts")
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            policy: Default policy for runs that pass none
            rng: Random source for jitter
            sleep: Coroutine used for backoff (asyncio.sleep if None)
        """
        self._policy = policy or RetryPolicy()
        self._rng = rng
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        """Get default policy."""
        return self._policy

    def calculate_delay(
        self,
        attempt: int,
        error: BaseException | None = None,
        policy: RetryPolicy | None = None,
    ) -> float:
        """Calculate the backoff after a failed attempt.

        Args:
            attempt: Zero-based index of the failed attempt
            error: The failure, consulted for throttling and Retry-After
            policy: Policy to apply (default policy if None)

        Returns:
            Delay in seconds
        """
        policy = policy or self._policy
        delay_ms = backoff_delay(
            attempt,
            policy.base_delay_ms,
            policy.max_delay_ms,
            policy.jitter_fraction,
            self._rng,
        )

        if error is not None:
            if policy.throttle_floor_ms and classify_exception(error).is_throttling:
                delay_ms = max(delay_ms, min(policy.throttle_floor_ms, policy.max_delay_ms))

            retry_after = getattr(error, "retry_after", None)
            if retry_after:
                delay_ms = max(delay_ms, min(retry_after * 1000, policy.max_delay_ms))

        return delay_ms / 1000.0

    def should_retry(
        self,
        error: BaseException,
        attempt: int,
        policy: RetryPolicy | None = None,
    ) -> bool:
        """Check if a failed attempt should be followed by another.

        Args:
            error: The failure
            attempt: Zero-based index of the failed attempt
            policy: Policy to apply (default policy if None)
        """
        policy = policy or self._policy
        if attempt >= policy.max_attempts - 1:
            return False
        return policy.classifier.is_retryable(error)

    async def _backoff(self, delay: float, cancel_token: CancelToken | None) -> bool:
        if cancel_token is not None:
            return await cancel_token.sleep(delay, self._sleep)
        sleep = self._sleep or asyncio.sleep
        await sleep(delay)
        return False

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        policy: RetryPolicy | None = None,
        observer: RetryObserver | None = None,
        cancel_token: CancelToken | None = None,
    ) -> RetryResult:
        """Run an operation until success, exhaustion or a fatal failure.

        Args:
            operation: Async single attempt, called with the attempt index
            policy: Policy to apply (default policy if None)
            observer: Notified before each backoff sleep
            cancel_token: Checked before each attempt and during backoff

        Returns:
            RetryResult with the value or the last error

        Raises:
            RequestCancelledError: If the token fires between attempts
        """
        policy = policy or self._policy
        observer = observer or NullObserver()
        delays: list[float] = []
        attempt = 0

        while True:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(attempts=attempt)

            try:
                value = await operation(attempt)
            except Exception as e:
                if not self.should_retry(e, attempt, policy):
                    return RetryResult(
                        success=False, error=e, attempts=attempt + 1, delays=delays
                    )

                delay = self.calculate_delay(attempt, e, policy)
                observer.on_retry(e, attempt, delay)
                logger.info(
                    "Retrying after failed attempt",
                    attempt=attempt,
                    delay_seconds=round(delay, 3),
                    kind=classify_exception(e).value,
                )
                delays.append(delay)

                if await self._backoff(delay, cancel_token):
                    cancel_token.raise_if_cancelled(attempts=attempt + 1)
                attempt += 1
                continue

            return RetryResult(
                success=True, value=value, attempts=attempt + 1, delays=delays
            )


async def with_retry(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy | None = None,
    observer: RetryObserver | None = None,
) -> T:
    """Execute an operation with retry, raising on failure.

    Args:
        operation: Async single attempt, called with the attempt index
        policy: Retry policy
        observer: Notified before each retry

    Returns:
        Operation result

    Raises:
        The last exception if all attempts fail
    """
    result = await RetryOrchestrator(policy).run(operation, observer=observer)

    if result.success:
        return result.value
    raise result.error  # type: ignore[misc]
