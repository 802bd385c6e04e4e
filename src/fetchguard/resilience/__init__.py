"""
Resilience layer - Concurrency limiting, retry, circuit breaking and cancellation.

This module provides the building blocks of the orchestrated executor:
- ConcurrencyLimiter: Bounded in-flight requests with runtime resizing
- RetryOrchestrator: Exponential backoff with additive jitter
- CircuitBreaker: Error-rate Closed/Open/Half-Open state machine
- CancelToken: Cooperative cancellation across attempts
- OrchestratedExecutor: Unified executor combining all patterns
"""

from fetchguard.resilience.cancel import CancelReason, CancelState, CancelToken
from fetchguard.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerSnapshot,
    CircuitState,
    CircuitStats,
)
from fetchguard.resilience.jitter import backoff_delay, jittered_delay, pace
from fetchguard.resilience.limiter import (
    ConcurrencyLimiter,
    LimiterConfig,
    LimiterToken,
)
from fetchguard.resilience.retry import (
    DefaultRetryClassifier,
    NullObserver,
    RecordingObserver,
    RetryClassifier,
    RetryNotification,
    RetryObserver,
    RetryOrchestrator,
    RetryPolicy,
    RetryResult,
    with_retry,
)

# Imported last: the executor depends on fetchguard.config, which depends on
# the modules above.
from fetchguard.resilience.executor import OrchestratedExecutor  # noqa: E402, I001

__all__ = [
    # Cancellation
    "CancelReason",
    "CancelState",
    "CancelToken",
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerSnapshot",
    "CircuitState",
    "CircuitStats",
    # Limiter
    "ConcurrencyLimiter",
    # Retry
    "DefaultRetryClassifier",
    "LimiterConfig",
    "LimiterToken",
    "NullObserver",
    # Executor
    "OrchestratedExecutor",
    "RecordingObserver",
    "RetryClassifier",
    "RetryNotification",
    "RetryObserver",
    "RetryOrchestrator",
    "RetryPolicy",
    "RetryResult",
    # Jitter
    "backoff_delay",
    "jittered_delay",
    "pace",
    "with_retry",
]
