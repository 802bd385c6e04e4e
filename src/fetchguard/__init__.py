"""
fetchguard: resilient execution of outbound HTTP requests.

Wraps a single-attempt network operation with a concurrency ceiling, retry
with exponential backoff and jitter, an error-rate circuit breaker, and
metrics with SLA evaluation.
"""
from __future__ import annotations

from fetchguard.errors import (
    AttemptError,
    CircuitOpenError,
    ConfigError,
    ExecutionError,
    FailureKind,
    FetchGuardError,
    RequestCancelledError,
)
from fetchguard.resilience import (
    CancelToken,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    ConcurrencyLimiter,
    LimiterConfig,
    OrchestratedExecutor,
    RetryOrchestrator,
    RetryPolicy,
)
from fetchguard.config import FetchGuardConfig  # noqa: I001
from fetchguard.telemetry import (
    HealthReport,
    HealthStatus,
    MetricsCollector,
    MetricsSnapshot,
    SLAConfig,
    SLAReport,
)
from fetchguard.types import (
    AttemptOutcome,
    ExecutionResult,
    FetchResponse,
    RequestDescriptor,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "AttemptError",
    "AttemptOutcome",
    # Resilience
    "CancelToken",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitOpenError",
    "CircuitState",
    "ConcurrencyLimiter",
    "ConfigError",
    "ExecutionError",
    "ExecutionResult",
    "FailureKind",
    # Config
    "FetchGuardConfig",
    "FetchGuardError",
    # Types
    "FetchResponse",
    # Telemetry
    "HealthReport",
    "HealthStatus",
    "LimiterConfig",
    "MetricsCollector",
    "MetricsSnapshot",
    "OrchestratedExecutor",
    "RequestCancelledError",
    "RequestDescriptor",
    "RetryOrchestrator",
    "RetryPolicy",
    "SLAConfig",
    "SLAReport",
    # Version
    "__version__",
]
