"""
Load runner for orchestrated executors.

Drives many logical requests through an executor with bounded concurrency
and optional humanlike pacing, then summarises throughput, latency
percentiles and SLA compliance.
"""

from __future__ import annotations

import asyncio
import random
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from fetchguard.errors import (
    ConfigError,
    FetchGuardError,
    RequestCancelledError,
    classify_exception,
)
from fetchguard.resilience.jitter import pace
from fetchguard.telemetry.logger import get_logger
from fetchguard.telemetry.metrics import percentile

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from fetchguard.resilience.executor import OrchestratedExecutor
    from fetchguard.types import RequestDescriptor

T = TypeVar("T")

logger = get_logger("fetchguard.load")


@dataclass
class LoadTestResult:
    """Outcome of one logical request in a load run.

    Attributes:
        index: Position in the run
        request_id: Request identifier
        success: Whether the request succeeded
        latency_ms: Wall time including queueing
        attempts: Attempts made (0 when rejected before any attempt)
        error_type: Failure kind value, or "cancelled"
        error: Error message
    """

    index: int
    request_id: str
    success: bool
    latency_ms: float
    attempts: int = 0
    error_type: str | None = None
    error: str | None = None


@dataclass
class LoadTestSummary:
    """Aggregate statistics of a load run."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    success_rate: float = 100.0
    average_latency_ms: float = 0.0
    p50_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    p99_latency_ms: float = 0.0
    min_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    requests_per_second: float = 0.0
    duration_seconds: float = 0.0
    sla_compliant: bool = True
    errors_by_type: dict[str, int] = field(default_factory=dict)
    results: list[LoadTestResult] = field(default_factory=list, repr=False)

    @classmethod
    def from_results(
        cls,
        results: Sequence[LoadTestResult],
        duration_seconds: float,
        latency_budget_ms: float,
        min_success_rate: float,
    ) -> LoadTestSummary:
        """Summarise per-request results.

        Args:
            results: Per-request results
            duration_seconds: Wall time of the run
            latency_budget_ms: SLA ceiling for average latency
            min_success_rate: SLA floor for success rate in percent
        """
        total = len(results)
        successes = sum(1 for r in results if r.success)
        latencies = [r.latency_ms for r in results]

        success_rate = successes / total * 100 if total else 100.0
        average = sum(latencies) / total if total else 0.0

        return cls(
            total_requests=total,
            successful_requests=successes,
            failed_requests=total - successes,
            success_rate=success_rate,
            average_latency_ms=average,
            p50_latency_ms=percentile(latencies, 0.50),
            p95_latency_ms=percentile(latencies, 0.95),
            p99_latency_ms=percentile(latencies, 0.99),
            min_latency_ms=min(latencies, default=0.0),
            max_latency_ms=max(latencies, default=0.0),
            requests_per_second=total / duration_seconds if duration_seconds > 0 else 0.0,
            duration_seconds=duration_seconds,
            sla_compliant=(
                average <= latency_budget_ms and success_rate >= min_success_rate
            ),
            errors_by_type=dict(
                Counter(r.error_type for r in results if r.error_type is not None)
            ),
            results=list(results),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (without per-request results)."""
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "success_rate": round(self.success_rate, 2),
            "average_latency_ms": round(self.average_latency_ms, 2),
            "p50_latency_ms": round(self.p50_latency_ms, 2),
            "p95_latency_ms": round(self.p95_latency_ms, 2),
            "p99_latency_ms": round(self.p99_latency_ms, 2),
            "min_latency_ms": round(self.min_latency_ms, 2),
            "max_latency_ms": round(self.max_latency_ms, 2),
            "requests_per_second": round(self.requests_per_second, 2),
            "duration_seconds": round(self.duration_seconds, 3),
            "sla_compliant": self.sla_compliant,
            "errors_by_type": dict(self.errors_by_type),
        }

    def report(self) -> str:
        """Human-readable report."""
        lines = [
            "Load Test Results",
            f"Total Requests: {self.total_requests}",
            f"Successful: {self.successful_requests}",
            f"Failed: {self.failed_requests}",
            f"Success Rate: {self.success_rate:.2f}%",
            f"Average Latency: {self.average_latency_ms:.0f}ms",
            f"P50 Latency: {self.p50_latency_ms:.0f}ms",
            f"P95 Latency: {self.p95_latency_ms:.0f}ms",
            f"P99 Latency: {self.p99_latency_ms:.0f}ms",
            f"Min/Max Latency: {self.min_latency_ms:.0f}ms / {self.max_latency_ms:.0f}ms",
            f"Requests/Second: {self.requests_per_second:.2f}",
            f"Duration: {self.duration_seconds:.1f}s",
            f"SLA Compliant: {'YES' if self.sla_compliant else 'NO'}",
        ]
        for error_type, count in sorted(self.errors_by_type.items()):
            lines.append(f"  {error_type}: {count}")
        return "\n".join(lines)


class LoadRunner(Generic[T]):
    """Runs batches of logical requests through an executor.

    Dispatch is bounded by ``concurrency``; the executor's own limiter still
    applies on top. With ``pacing_ms`` set, the dispatcher waits a jittered
    delay between consecutive dispatches.

    Example:
        >>> runner = LoadRunner(executor, HttpAttempt(), concurrency=20, pacing_ms=50)
        >>> summary = await runner.run_repeated(templates, total=1000)
        >>> print(summary.report())
    """

    def __init__(
        self,
        executor: OrchestratedExecutor,
        attempt_fn: Callable[[RequestDescriptor, int], Awaitable[T]],
        *,
        concurrency: int = 10,
        pacing_ms: float = 0.0,
        jitter_fraction: float = 0.2,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Initialize load runner.

        Args:
            executor: Executor every request goes through
            attempt_fn: Single-attempt operation
            concurrency: Maximum requests dispatched at once
            pacing_ms: Target delay between dispatches (0 disables pacing)
            jitter_fraction: Relative jitter of the pacing delay
            rng: Random source for pacing and template selection
            clock: Time source in seconds
        """
        if concurrency < 1:
            raise ConfigError("concurrency must be at least 1", field="concurrency")
        if pacing_ms < 0:
            raise ConfigError("pacing_ms must not be negative", field="pacing_ms")

        self._executor = executor
        self._attempt_fn = attempt_fn
        self._concurrency = concurrency
        self._pacing_ms = pacing_ms
        self._jitter_fraction = jitter_fraction
        self._rng = rng or random.Random()
        self._clock = clock

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def _run_one(
        self,
        index: int,
        request: RequestDescriptor,
        semaphore: asyncio.Semaphore,
    ) -> LoadTestResult:
        async with semaphore:
            started = self._clock()
            try:
                result = await self._executor.execute(request, self._attempt_fn)
            except FetchGuardError as e:
                if isinstance(e, RequestCancelledError):
                    error_type = "cancelled"
                else:
                    error_type = classify_exception(e).value
                return LoadTestResult(
                    index=index,
                    request_id=request.request_id,
                    success=False,
                    latency_ms=(self._clock() - started) * 1000,
                    attempts=getattr(e, "attempts", 0),
                    error_type=error_type,
                    error=str(e),
                )

            return LoadTestResult(
                index=index,
                request_id=request.request_id,
                success=True,
                latency_ms=(self._clock() - started) * 1000,
                attempts=result.attempts,
            )

    async def run(
        self,
        requests: Sequence[RequestDescriptor],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> LoadTestSummary:
        """Run every request once.

        Args:
            requests: Requests to execute
            on_progress: Callback(completed, total)

        Returns:
            LoadTestSummary for the run
        """
        total = len(requests)
        semaphore = asyncio.Semaphore(self._concurrency)
        completed = 0

        logger.info(
            "Starting load run",
            total=total,
            concurrency=self._concurrency,
            pacing_ms=self._pacing_ms,
        )

        def _done(_: asyncio.Task[LoadTestResult]) -> None:
            nonlocal completed
            completed += 1
            if on_progress:
                on_progress(completed, total)

        started = self._clock()
        tasks: list[asyncio.Task[LoadTestResult]] = []
        for index, request in enumerate(requests):
            if index > 0 and self._pacing_ms > 0:
                await pace(self._pacing_ms / 1000, self._jitter_fraction, self._rng)
            task = asyncio.create_task(self._run_one(index, request, semaphore))
            task.add_done_callback(_done)
            tasks.append(task)

        results = await asyncio.gather(*tasks)
        duration = self._clock() - started

        sla = self._executor.config.sla
        summary = LoadTestSummary.from_results(
            results,
            duration,
            latency_budget_ms=sla.latency_budget_ms,
            min_success_rate=sla.min_success_rate,
        )
        logger.info(
            "Load run finished",
            total=summary.total_requests,
            success_rate=round(summary.success_rate, 2),
            p95_latency_ms=round(summary.p95_latency_ms, 2),
            sla_compliant=summary.sla_compliant,
        )
        return summary

    async def run_repeated(
        self,
        templates: Sequence[RequestDescriptor],
        total: int,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> LoadTestSummary:
        """Run ``total`` requests drawn at random from ``templates``.

        Each drawn request gets a fresh request id.
        """
        if not templates:
            raise ConfigError("At least one request template is required", field="templates")
        if total < 0:
            raise ConfigError("total must not be negative", field="total")

        requests = [
            self._rng.choice(templates).model_copy(
                update={"request_id": uuid.uuid4().hex[:16]}
            )
            for _ in range(total)
        ]
        return await self.run(requests, on_progress)
