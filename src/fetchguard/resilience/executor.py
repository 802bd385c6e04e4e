"""
Orchestrated executor combining all resilience patterns.

Provides the public entry point for logical requests: concurrency limiting,
circuit breaking, retry with backoff and per-attempt metrics, composed in
that order around a single-attempt operation.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, TypeVar

from fetchguard.config import FetchGuardConfig
from fetchguard.errors import (
    CircuitOpenError,
    ExecutionError,
    FailureKind,
    RequestCancelledError,
)
from fetchguard.resilience.circuit_breaker import CircuitBreaker
from fetchguard.resilience.limiter import ConcurrencyLimiter
from fetchguard.resilience.retry import NullObserver, RetryOrchestrator
from fetchguard.telemetry.health import HealthReport, evaluate_health
from fetchguard.telemetry.logger import (
    LogContext,
    get_log_context,
    get_logger,
    set_log_context,
)
from fetchguard.telemetry.metrics import MetricsCollector
from fetchguard.types import AttemptOutcome, ExecutionResult

if TYPE_CHECKING:
    import random
    from collections.abc import Awaitable, Callable

    from fetchguard.resilience.cancel import CancelToken
    from fetchguard.resilience.retry import RetryObserver, RetryPolicy
    from fetchguard.telemetry.metrics import MetricsSnapshot
    from fetchguard.types import RequestDescriptor

T = TypeVar("T")

logger = get_logger("fetchguard.executor")


class _MetricsObserver:
    """Counts retries in metrics and forwards to the caller's observer."""

    def __init__(self, metrics: MetricsCollector, inner: RetryObserver) -> None:
        self._metrics = metrics
        self._inner = inner

    def on_retry(self, error: BaseException, attempt: int, delay: float) -> None:
        self._metrics.record_retry()
        self._inner.on_retry(error, attempt, delay)


class OrchestratedExecutor:
    """Executor for logical requests against one upstream.

    Executes operations with:
    1. Concurrency limiting (queues beyond capacity)
    2. Circuit breaker (one aggregate outcome per logical request)
    3. Retry with exponential backoff and jitter
    4. Per-attempt metrics

    Each executor owns its limiter, breaker and collector; create one
    executor per upstream target.

    Example:
        >>> executor = OrchestratedExecutor(FetchGuardConfig.production(), name="search")
        >>> result = await executor.execute(request, HttpAttempt(client))
        >>> print(result.value.data, result.attempts)
    """

    def __init__(
        self,
        config: FetchGuardConfig | None = None,
        *,
        name: str = "default",
        limiter: ConcurrencyLimiter | None = None,
        breaker: CircuitBreaker | None = None,
        metrics: MetricsCollector | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize executor.

        Args:
            config: Executor configuration
            name: Identifier used in logs and health reports
            limiter: Concurrency limiter (built from config if None)
            breaker: Circuit breaker (built from config if None)
            metrics: Metrics collector (built from config if None)
            rng: Random source for backoff jitter
            clock: Monotonic time source in seconds
        """
        self._config = config or FetchGuardConfig()
        self._name = name
        self._clock = clock

        self._limiter = limiter or ConcurrencyLimiter(self._config.limiter)
        self._breaker = breaker or CircuitBreaker(
            self._config.circuit_breaker, name=name, clock=clock
        )
        self._metrics = metrics or MetricsCollector(self._config.sla)
        self._retry = RetryOrchestrator(self._config.retry, rng=rng)

    @property
    def name(self) -> str:
        """Get executor name."""
        return self._name

    @property
    def config(self) -> FetchGuardConfig:
        """Get executor configuration."""
        return self._config

    @property
    def limiter(self) -> ConcurrencyLimiter:
        return self._limiter

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def collector(self) -> MetricsCollector:
        return self._metrics

    def _elapsed_ms(self, started: float) -> float:
        return (self._clock() - started) * 1000

    def _prepare(self, request: RequestDescriptor) -> RequestDescriptor:
        if request.timeout_seconds is None:
            return request.model_copy(
                update={"timeout_seconds": self._config.request_timeout_seconds}
            )
        return request

    async def execute(
        self,
        request: RequestDescriptor,
        attempt_fn: Callable[[RequestDescriptor, int], Awaitable[T]],
        *,
        policy: RetryPolicy | None = None,
        observer: RetryObserver | None = None,
        cancel_token: CancelToken | None = None,
    ) -> ExecutionResult[T]:
        """Execute one logical request.

        Args:
            request: Request descriptor handed to every attempt
            attempt_fn: Single-attempt operation ``(request, attempt_index)``
            policy: Retry policy override for this request
            observer: Notified before each backoff sleep
            cancel_token: Cooperative cancellation for this request

        Returns:
            ExecutionResult with the value and execution metadata

        Raises:
            CircuitOpenError: If the breaker rejected the request
            ExecutionError: If every permitted attempt failed
            RequestCancelledError: If the request was cancelled
        """
        request = self._prepare(request)
        previous_context = get_log_context()
        set_log_context(
            LogContext(request_id=request.request_id, target=self._name)
        )

        try:
            return await self._execute(
                request, attempt_fn, policy, observer, cancel_token
            )
        finally:
            set_log_context(previous_context)

    async def _execute(
        self,
        request: RequestDescriptor,
        attempt_fn: Callable[[RequestDescriptor, int], Awaitable[T]],
        policy: RetryPolicy | None,
        observer: RetryObserver | None,
        cancel_token: CancelToken | None,
    ) -> ExecutionResult[T]:
        started = self._clock()
        delays: list[float] = []

        async def attempt(index: int) -> T:
            set_log_context(
                LogContext(request_id=request.request_id, target=self._name, attempt=index)
            )
            attempt_started = self._clock()
            try:
                value = await attempt_fn(request, index)
            except Exception as e:
                self._metrics.record_outcome(
                    AttemptOutcome.from_error(e, self._elapsed_ms(attempt_started), index)
                )
                raise
            self._metrics.record_outcome(
                AttemptOutcome.succeeded(self._elapsed_ms(attempt_started), index)
            )
            return value

        async def run_attempts() -> tuple[T, int]:
            result = await self._retry.run(
                attempt,
                policy,
                _MetricsObserver(self._metrics, observer or NullObserver()),
                cancel_token,
            )
            delays.extend(result.delays)
            if result.success:
                return result.value, result.attempts

            error = result.error
            if isinstance(error, RequestCancelledError):
                raise error
            raise ExecutionError(
                f"Request failed after {result.attempts} attempt(s): {error}",
                attempts=result.attempts,
                cause=error,
            ) from error

        async with self._limiter.slot():
            try:
                value, attempts = await self._breaker.execute(run_attempts)
            except CircuitOpenError:
                self._metrics.record_failure(0.0, FailureKind.CIRCUIT_OPEN)
                self._metrics.record_circuit_breaker_trip()
                logger.warning(
                    "Request rejected by open circuit breaker",
                    time_until_retry=self._breaker.get_time_until_retry(),
                )
                raise
            except ExecutionError as e:
                logger.warning(
                    "Request failed",
                    attempts=e.attempts,
                    kind=e.kind.value,
                    latency_ms=round(self._elapsed_ms(started), 2),
                )
                raise
            except RequestCancelledError as e:
                logger.info("Request cancelled", reason=e.reason, attempts=e.attempts)
                raise

        latency_ms = self._elapsed_ms(started)
        logger.debug("Request succeeded", attempts=attempts, latency_ms=round(latency_ms, 2))
        return ExecutionResult(
            value=value,
            request=request,
            attempts=attempts,
            latency_ms=latency_ms,
            delays=delays,
        )

    def health(self) -> HealthReport:
        """Evaluate executor health from breaker state and SLA verdict."""
        breaker_state = self._breaker.get_state()
        sla = self._metrics.check_sla()
        return HealthReport(
            name=self._name,
            status=evaluate_health(breaker_state, sla),
            circuit_state=breaker_state.state.value,
            sla=sla,
            metrics=self._metrics.snapshot(),
            limiter=self._limiter.get_stats(),
        )

    def metrics(self) -> MetricsSnapshot:
        """Get a metrics snapshot."""
        return self._metrics.snapshot()

    def reset(self) -> None:
        """Clear metrics and force the circuit breaker closed."""
        self._metrics.reset()
        self._breaker.reset()
        logger.info("Executor reset", executor=self._name)

    async def resize(self, capacity: int) -> None:
        """Change the concurrency capacity at runtime."""
        await self._limiter.resize(capacity)

    def get_stats(self) -> dict[str, Any]:
        """Get current statistics from all components."""
        return {
            "name": self._name,
            "limiter": self._limiter.get_stats(),
            "circuit_breaker": self._breaker.get_state().to_dict(),
            "metrics": self._metrics.snapshot().to_dict(),
        }

    def __repr__(self) -> str:
        return (
            f"OrchestratedExecutor(name={self._name}, "
            f"circuit={self._breaker.state.value}, limiter={self._limiter!r})"
        )
