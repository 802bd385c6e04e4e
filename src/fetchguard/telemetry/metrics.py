"""
Metrics collection for fetchguard.

Records the outcome of every attempt, derives latency statistics from a
bounded sample buffer, and evaluates SLA compliance.
"""

from __future__ import annotations

import math
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from fetchguard.errors import ConfigError, FailureKind

if TYPE_CHECKING:
    from collections.abc import Iterable

    from fetchguard.types import AttemptOutcome

DEFAULT_SAMPLE_SIZE = 1000


def percentile(samples: Iterable[float], quantile: float) -> float:
    """Nearest-rank percentile over unsorted samples.

    Sorts the samples and indexes at ``floor(quantile * (n - 1))``.

    Args:
        samples: Latency samples
        quantile: Quantile in [0, 1]

    Returns:
        Percentile value, 0.0 for no samples
    """
    ordered = sorted(samples)
    if not ordered:
        return 0.0
    return ordered[math.floor(quantile * (len(ordered) - 1))]


@dataclass
class SLAConfig:
    """Service-level thresholds.

    Attributes:
        latency_budget_ms: Maximum acceptable average latency
        min_success_rate: Minimum acceptable success rate in percent
    """

    latency_budget_ms: float = 6000.0
    min_success_rate: float = 95.0

    def __post_init__(self) -> None:
        if self.latency_budget_ms <= 0:
            raise ConfigError(
                "latency_budget_ms must be positive", field="latency_budget_ms"
            )
        if not 0 <= self.min_success_rate <= 100:
            raise ConfigError(
                "min_success_rate must be between 0 and 100",
                field="min_success_rate",
            )


@dataclass
class SLAReport:
    """SLA verdict.

    Attributes:
        avg_latency_ok: Average latency within budget
        error_rate_ok: Success rate at or above the floor
        success_rate: Success rate in percent
        average_latency_ms: Average latency over the sample buffer
        summary: Human-readable verdict
    """

    avg_latency_ok: bool
    error_rate_ok: bool
    success_rate: float
    average_latency_ms: float
    summary: str

    @property
    def compliant(self) -> bool:
        """Check if every SLA dimension passes."""
        return self.avg_latency_ok and self.error_rate_ok

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "avg_latency_ok": self.avg_latency_ok,
            "error_rate_ok": self.error_rate_ok,
            "success_rate": self.success_rate,
            "average_latency_ms": self.average_latency_ms,
            "compliant": self.compliant,
            "summary": self.summary,
        }


@dataclass
class MetricsSnapshot:
    """Point-in-time view of collected metrics.

    Attributes:
        total_requests: Recorded attempts
        successful_requests: Successful attempts
        failed_requests: Failed attempts (circuit rejections included)
        average_latency_ms: Mean over the sample buffer
        p95_latency_ms: 95th percentile over the sample buffer
        errors_by_kind: Failure count per FailureKind value
        errors_by_status: Failure count per upstream status code
        circuit_breaker_trips: Requests rejected by an open breaker
        retry_count: Backoff retries scheduled
        sample_count: Samples currently in the buffer
        last_reset_at: Time of construction or last reset (UTC)
    """

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    errors_by_kind: dict[str, int] = field(default_factory=dict)
    errors_by_status: dict[int, int] = field(default_factory=dict)
    circuit_breaker_trips: int = 0
    retry_count: int = 0
    sample_count: int = 0
    last_reset_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def success_rate(self) -> float:
        """Success rate in percent (100.0 when nothing was recorded)."""
        if self.total_requests == 0:
            return 100.0
        return self.successful_requests / self.total_requests * 100

    @property
    def error_rate(self) -> float:
        """Error rate as a fraction."""
        if self.total_requests == 0:
            return 0.0
        return self.failed_requests / self.total_requests

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "success_rate": round(self.success_rate, 2),
            "average_latency_ms": round(self.average_latency_ms, 2),
            "p95_latency_ms": round(self.p95_latency_ms, 2),
            "errors_by_kind": dict(self.errors_by_kind),
            "errors_by_status": {str(k): v for k, v in self.errors_by_status.items()},
            "circuit_breaker_trips": self.circuit_breaker_trips,
            "retry_count": self.retry_count,
            "last_reset_at": self.last_reset_at.isoformat(),
        }


class MetricsCollector:
    """Collects per-attempt metrics and evaluates SLA compliance.

    Thread-safe. Latency samples are kept in a FIFO buffer of bounded size;
    average and p95 are computed over that buffer.

    Example:
        >>> collector = MetricsCollector()
        >>> collector.record_success(120.0)
        >>> collector.record_failure(800.0, FailureKind.RATE_LIMITED, 429)
        >>> collector.check_sla().summary
        'Latency: 460.0ms (OK), Success Rate: 50.0% (FAIL)'
    """

    def __init__(
        self,
        sla: SLAConfig | None = None,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
    ) -> None:
        """Initialize collector.

        Args:
            sla: SLA thresholds
            sample_size: Latency samples kept for average and percentiles
        """
        if sample_size < 1:
            raise ConfigError("sample_size must be at least 1", field="sample_size")

        self._lock = threading.Lock()
        self._sla = sla or SLAConfig()
        self._samples: deque[float] = deque(maxlen=sample_size)
        self._reset_state()

    def _reset_state(self) -> None:
        self._total = 0
        self._successes = 0
        self._failures = 0
        self._errors_by_kind: dict[str, int] = {}
        self._errors_by_status: dict[int, int] = {}
        self._circuit_trips = 0
        self._retries = 0
        self._samples.clear()
        self._last_reset_at = datetime.now(timezone.utc)

    @property
    def sla(self) -> SLAConfig:
        """Get SLA thresholds."""
        return self._sla

    def record_success(self, latency_ms: float) -> None:
        """Record a successful attempt.

        Args:
            latency_ms: Attempt latency in milliseconds
        """
        with self._lock:
            self._total += 1
            self._successes += 1
            self._samples.append(latency_ms)

    def record_failure(
        self,
        latency_ms: float,
        failure_kind: FailureKind = FailureKind.UNKNOWN,
        status_code: int | None = None,
    ) -> None:
        """Record a failed attempt.

        Circuit-open rejections are counted but add no latency sample, since
        no attempt was made.

        Args:
            latency_ms: Attempt latency in milliseconds
            failure_kind: Failure classification
            status_code: Upstream status code, if any
        """
        with self._lock:
            self._total += 1
            self._failures += 1
            if failure_kind is not FailureKind.CIRCUIT_OPEN:
                self._samples.append(latency_ms)

            kind = failure_kind.value
            self._errors_by_kind[kind] = self._errors_by_kind.get(kind, 0) + 1
            if status_code:
                self._errors_by_status[status_code] = (
                    self._errors_by_status.get(status_code, 0) + 1
                )

    def record_outcome(self, outcome: AttemptOutcome) -> None:
        """Record an attempt outcome."""
        if outcome.success:
            self.record_success(outcome.latency_ms)
        else:
            self.record_failure(
                outcome.latency_ms,
                outcome.failure_kind or FailureKind.UNKNOWN,
                outcome.status_code,
            )

    def record_retry(self) -> None:
        """Record a scheduled retry."""
        with self._lock:
            self._retries += 1

    def record_circuit_breaker_trip(self) -> None:
        """Record a request tripped by an open circuit breaker."""
        with self._lock:
            self._circuit_trips += 1

    def snapshot(self) -> MetricsSnapshot:
        """Get current metrics snapshot."""
        with self._lock:
            samples = list(self._samples)
            return MetricsSnapshot(
                total_requests=self._total,
                successful_requests=self._successes,
                failed_requests=self._failures,
                average_latency_ms=sum(samples) / len(samples) if samples else 0.0,
                p95_latency_ms=percentile(samples, 0.95),
                errors_by_kind=dict(self._errors_by_kind),
                errors_by_status=dict(self._errors_by_status),
                circuit_breaker_trips=self._circuit_trips,
                retry_count=self._retries,
                sample_count=len(samples),
                last_reset_at=self._last_reset_at,
            )

    def success_rate(self) -> float:
        """Success rate in percent (100.0 when nothing was recorded)."""
        return self.snapshot().success_rate

    def check_sla(self) -> SLAReport:
        """Evaluate the SLA against the current snapshot."""
        snapshot = self.snapshot()
        success_rate = snapshot.success_rate
        avg_latency_ok = snapshot.average_latency_ms <= self._sla.latency_budget_ms
        error_rate_ok = success_rate >= self._sla.min_success_rate

        summary = (
            f"Latency: {round(snapshot.average_latency_ms, 2)}ms "
            f"({'OK' if avg_latency_ok else 'FAIL'}), "
            f"Success Rate: {round(success_rate, 2)}% "
            f"({'OK' if error_rate_ok else 'FAIL'})"
        )

        return SLAReport(
            avg_latency_ok=avg_latency_ok,
            error_rate_ok=error_rate_ok,
            success_rate=success_rate,
            average_latency_ms=snapshot.average_latency_ms,
            summary=summary,
        )

    def summary(self) -> str:
        """Human-readable metrics summary."""
        snapshot = self.snapshot()
        sla = self.check_sla()
        return "\n".join(
            [
                "Metrics Summary",
                f"Total Requests: {snapshot.total_requests}",
                f"Success Rate: {round(snapshot.success_rate, 2)}% "
                f"({snapshot.successful_requests}/{snapshot.total_requests})",
                f"Avg Latency: {round(snapshot.average_latency_ms, 2)}ms",
                f"P95 Latency: {round(snapshot.p95_latency_ms, 2)}ms",
                f"Circuit Breaker Trips: {snapshot.circuit_breaker_trips}",
                f"SLA Status: {sla.summary}",
                f"Last Reset: {snapshot.last_reset_at.isoformat()}",
            ]
        )

    def reset(self) -> None:
        """Reset all counters and clear the sample buffer."""
        with self._lock:
            self._reset_state()

    def to_prometheus(self, prefix: str = "fetchguard") -> str:
        """Export metrics in Prometheus text format.

        Args:
            prefix: Metric name prefix

        Returns:
            Prometheus-formatted metrics string
        """
        snapshot = self.snapshot()
        lines: list[str] = []

        lines.append(f"# HELP {prefix}_attempts_total Total attempts")
        lines.append(f"# TYPE {prefix}_attempts_total counter")
        lines.append(f"{prefix}_attempts_total {snapshot.total_requests}")

        lines.append(f"# HELP {prefix}_attempts_success_total Successful attempts")
        lines.append(f"# TYPE {prefix}_attempts_success_total counter")
        lines.append(f"{prefix}_attempts_success_total {snapshot.successful_requests}")

        lines.append(f"# HELP {prefix}_attempts_error_total Failed attempts by kind")
        lines.append(f"# TYPE {prefix}_attempts_error_total counter")
        for kind, count in sorted(snapshot.errors_by_kind.items()):
            lines.append(f'{prefix}_attempts_error_total{{kind="{kind}"}} {count}')

        lines.append(f"# HELP {prefix}_attempt_latency_ms Attempt latency")
        lines.append(f"# TYPE {prefix}_attempt_latency_ms summary")
        lines.append(
            f'{prefix}_attempt_latency_ms{{quantile="0.95"}} {snapshot.p95_latency_ms}'
        )
        lines.append(
            f"{prefix}_attempt_latency_ms_count {snapshot.sample_count}"
        )

        lines.append(f"# HELP {prefix}_retries_total Scheduled retries")
        lines.append(f"# TYPE {prefix}_retries_total counter")
        lines.append(f"{prefix}_retries_total {snapshot.retry_count}")

        lines.append(f"# HELP {prefix}_circuit_trips_total Breaker rejections")
        lines.append(f"# TYPE {prefix}_circuit_trips_total counter")
        lines.append(f"{prefix}_circuit_trips_total {snapshot.circuit_breaker_trips}")

        return "\n".join(lines)
