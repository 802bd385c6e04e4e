"""
Health evaluation for fetchguard executors.

Combines circuit breaker state with the SLA verdict into a single report
suitable for a health endpoint.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fetchguard.resilience.circuit_breaker import CircuitBreakerSnapshot
    from fetchguard.telemetry.metrics import MetricsSnapshot, SLAReport


class HealthStatus(str, Enum):
    """Health status levels."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class HealthReport:
    """Machine-readable health of one executor.

    Attributes:
        name: Executor name
        status: Overall status
        circuit_state: Breaker state value
        sla: SLA verdict
        metrics: Metrics snapshot the verdict was computed from
        limiter: Limiter statistics
        timestamp: Report timestamp
    """

    name: str
    status: HealthStatus
    circuit_state: str
    sla: SLAReport
    metrics: MetricsSnapshot
    limiter: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "status": self.status.value,
            "circuit_breaker": self.circuit_state,
            "sla": self.sla.to_dict(),
            "metrics": self.metrics.to_dict(),
            "limiter": self.limiter,
            "timestamp": self.timestamp,
        }


def evaluate_health(
    breaker: CircuitBreakerSnapshot,
    sla: SLAReport,
) -> HealthStatus:
    """Derive an overall status.

    An open breaker is unhealthy. A half-open breaker or a missed SLA is
    degraded. Anything else is healthy.
    """
    from fetchguard.resilience.circuit_breaker import CircuitState

    if breaker.state is CircuitState.OPEN:
        return HealthStatus.UNHEALTHY
    if breaker.state is CircuitState.HALF_OPEN or not sla.compliant:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY
