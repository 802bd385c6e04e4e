"""
Circuit breaker for fault isolation.

Implements the circuit breaker pattern with three states:
- Closed: Normal operation, outcomes feed a rolling error rate
- Open: Circuit tripped, requests fail fast
- Half-Open: A single probe tests whether the upstream recovered
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from fetchguard.errors import CircuitOpenError, ConfigError, RequestCancelledError
from fetchguard.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = get_logger("fetchguard.breaker")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker.

    Attributes:
        error_rate_threshold: Error rate in percent that must be exceeded to trip
        minimum_sample_size: Outcomes required before the rate is trusted
        reset_timeout_seconds: Time spent open before a probe is allowed
        ignored_exceptions: Exceptions that count neither as success nor failure
    """

    error_rate_threshold: float = 50.0
    minimum_sample_size: int = 10
    reset_timeout_seconds: float = 60.0
    ignored_exceptions: tuple[type[BaseException], ...] = (RequestCancelledError,)

    def __post_init__(self) -> None:
        if not 0 <= self.error_rate_threshold < 100:
            raise ConfigError(
                "error_rate_threshold must be in [0, 100)",
                field="error_rate_threshold",
            )
        if self.minimum_sample_size < 1:
            raise ConfigError(
                "minimum_sample_size must be at least 1",
                field="minimum_sample_size",
            )
        if self.reset_timeout_seconds < 0:
            raise ConfigError(
                "reset_timeout_seconds must not be negative",
                field="reset_timeout_seconds",
            )


@dataclass(frozen=True)
class CircuitBreakerSnapshot:
    """Read-only view of breaker state."""

    state: CircuitState
    failure_count: int
    success_count: int
    error_rate_percent: float
    trips: int
    opened_at: float | None = None
    last_failure_time: float | None = None
    time_until_retry: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "error_rate_percent": self.error_rate_percent,
            "trips": self.trips,
            "time_until_retry": self.time_until_retry,
        }


@dataclass
class CircuitStats:
    """Lifetime statistics for circuit breaker."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rejected_requests: int = 0
    state_changes: int = 0
    trips: int = 0


class CircuitBreaker:
    """Error-rate circuit breaker.

    While closed, every aggregate outcome updates a failure and a success
    counter. The breaker trips once the failure share exceeds the threshold
    and at least ``minimum_sample_size`` outcomes were seen. While open,
    calls are rejected until ``reset_timeout_seconds`` elapsed; the next call
    then runs as the only half-open probe.

    State transitions happen without suspension points, so they are atomic
    with respect to other tasks on the same event loop.

    Example:
        >>> breaker = CircuitBreaker(CircuitBreakerConfig(error_rate_threshold=50))
        >>> try:
        ...     result = await breaker.execute(async_operation)
        ... except CircuitOpenError as e:
        ...     print(f"Upstream unavailable, retry in {e.time_until_retry:.0f}s")
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        *,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Callable[[CircuitState, CircuitState], None] | None = None,
    ) -> None:
        """Initialize circuit breaker.

        Args:
            config: Circuit breaker configuration
            name: Identifier used in logs
            clock: Monotonic time source in seconds
            on_state_change: Listener called with (old_state, new_state)
        """
        self._config = config or CircuitBreakerConfig()
        self._name = name
        self._clock = clock
        self._on_state_change = on_state_change

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float | None = None
        self._opened_at: float | None = None
        self._probe_in_flight = False

        self._stats = CircuitStats()

    @property
    def config(self) -> CircuitBreakerConfig:
        """Get breaker configuration."""
        return self._config

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        return self._state

    @property
    def is_closed(self) -> bool:
        """Check if circuit is closed (normal operation)."""
        return self._state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        """Check if circuit is open (failing fast)."""
        return self._state == CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        """Check if circuit is half-open (probing)."""
        return self._state == CircuitState.HALF_OPEN

    def _error_rate(self) -> float:
        total = self._failure_count + self._success_count
        if total == 0:
            return 0.0
        return self._failure_count / total * 100

    def _transition_to(self, new_state: CircuitState) -> None:
        """Transition to a new state."""
        if new_state == self._state:
            return

        old_state = self._state
        self._state = new_state
        self._stats.state_changes += 1

        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
            self._failure_count = 0
            self._success_count = 0
            self._stats.trips += 1
            logger.warning(
                "Circuit breaker opened",
                breaker=self._name,
                previous=old_state.value,
                reset_timeout_seconds=self._config.reset_timeout_seconds,
            )
        elif new_state == CircuitState.CLOSED:
            self._failure_count = 0
            self._success_count = 0
            self._opened_at = None
            logger.info("Circuit breaker closed", breaker=self._name)
        else:
            logger.info("Circuit breaker half-open, probing", breaker=self._name)

        if self._on_state_change:
            self._on_state_change(old_state, new_state)

    def _admit(self) -> bool:
        """Decide whether a call may run.

        Returns:
            True if the call is the half-open probe

        Raises:
            CircuitOpenError: If the call is rejected
        """
        if self._state == CircuitState.OPEN:
            elapsed = self._clock() - (self._opened_at or 0.0)
            if elapsed > self._config.reset_timeout_seconds:
                self._transition_to(CircuitState.HALF_OPEN)
            else:
                self._stats.rejected_requests += 1
                raise CircuitOpenError(time_until_retry=self.get_time_until_retry())

        if self._state == CircuitState.HALF_OPEN:
            if self._probe_in_flight:
                self._stats.rejected_requests += 1
                raise CircuitOpenError(
                    "Circuit breaker is half-open and a probe is in flight",
                    time_until_retry=0.0,
                )
            self._probe_in_flight = True
            return True

        return False

    def _record_success(self, is_probe: bool) -> None:
        """Record a successful operation."""
        self._stats.successful_requests += 1

        if is_probe:
            self._probe_in_flight = False
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.CLOSED)
                return

        if self._state == CircuitState.CLOSED:
            self._success_count += 1

    def _record_failure(self, is_probe: bool) -> None:
        """Record a failed operation."""
        self._stats.failed_requests += 1
        self._last_failure_time = self._clock()

        if is_probe:
            self._probe_in_flight = False
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN)
                return

        if self._state != CircuitState.CLOSED:
            return

        self._failure_count += 1
        total = self._failure_count + self._success_count
        if (
            self._error_rate() > self._config.error_rate_threshold
            and total >= self._config.minimum_sample_size
        ):
            self._transition_to(CircuitState.OPEN)

    def get_time_until_retry(self) -> float | None:
        """Get time until the next call is allowed to probe.

        Returns:
            Seconds until retry, or None if not open
        """
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return None

        elapsed = self._clock() - self._opened_at
        return max(0.0, self._config.reset_timeout_seconds - elapsed)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Execute an operation through the circuit breaker.

        Args:
            operation: Async operation to execute

        Returns:
            Operation result

        Raises:
            CircuitOpenError: If the circuit rejects the call
        """
        self._stats.total_requests += 1
        is_probe = self._admit()

        try:
            result = await operation()
        except Exception as exc:
            if isinstance(exc, self._config.ignored_exceptions):
                if is_probe:
                    self._probe_in_flight = False
            else:
                self._record_failure(is_probe)
            raise
        except BaseException:
            if is_probe:
                self._probe_in_flight = False
            raise

        self._record_success(is_probe)
        return result

    def get_state(self) -> CircuitBreakerSnapshot:
        """Get a read-only snapshot of breaker state."""
        return CircuitBreakerSnapshot(
            state=self._state,
            failure_count=self._failure_count,
            success_count=self._success_count,
            error_rate_percent=round(self._error_rate(), 2),
            trips=self._stats.trips,
            opened_at=self._opened_at,
            last_failure_time=self._last_failure_time,
            time_until_retry=self.get_time_until_retry(),
        )

    def reset(self) -> None:
        """Force the breaker closed with zeroed counters."""
        previous = self._state
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None
        self._last_failure_time = None
        self._probe_in_flight = False
        logger.info("Circuit breaker reset", breaker=self._name, previous=previous.value)

    def get_stats(self) -> CircuitStats:
        """Get circuit breaker statistics."""
        return CircuitStats(
            total_requests=self._stats.total_requests,
            successful_requests=self._stats.successful_requests,
            failed_requests=self._stats.failed_requests,
            rejected_requests=self._stats.rejected_requests,
            state_changes=self._stats.state_changes,
            trips=self._stats.trips,
        )

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(name={self._name}, state={self._state.value}, "
            f"failures={self._failure_count}, successes={self._success_count})"
        )
