"""
Error hierarchy for fetchguard.

Provides structured error types and the failure classification that drives
retry, circuit breaking and metrics.
"""

from fetchguard.errors.base import (
    AttemptError,
    CircuitOpenError,
    ConfigError,
    ErrorContext,
    ExecutionError,
    FetchGuardError,
    RequestCancelledError,
)
from fetchguard.errors.classification import (
    RETRYABLE_STATUS_CODES,
    FailureKind,
    classify_exception,
    classify_status,
    is_retryable,
)

__all__ = [
    # Base errors
    "AttemptError",
    "CircuitOpenError",
    "ConfigError",
    "ErrorContext",
    "ExecutionError",
    # Classification
    "FailureKind",
    "FetchGuardError",
    "RETRYABLE_STATUS_CODES",
    "RequestCancelledError",
    "classify_exception",
    "classify_status",
    "is_retryable",
]
