"""
Base error classes for fetchguard.

Provides a layered error hierarchy:
- FetchGuardError: Base class for all library errors
- ConfigError: Invalid configuration values
- AttemptError: One classified failure of a single network attempt
- CircuitOpenError: Rejection by an open circuit breaker
- ExecutionError: Terminal failure of a logical request
- RequestCancelledError: Cooperative cancellation of a logical request
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
from typing import Any

from fetchguard.errors.classification import (
    RETRYABLE_STATUS_CODES,
    FailureKind,
    classify_exception,
    classify_status,
    is_retryable,
)


@dataclass
class ErrorContext:
    """Structured error context for diagnostics."""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'config', 'attempt', 'breaker')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class FetchGuardError(Exception):
    """Base class for all fetchguard errors.

    Attributes:
        message: Human-readable error message
        context: Structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> FetchGuardError:
        """Add a hint to this error."""
        self.context.hint = hint
        return self


class ConfigError(FetchGuardError):
    """Invalid configuration value or combination."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        ctx = ErrorContext(source="config")
        if field:
            ctx.details["field"] = field
        super().__init__(message, ctx)
        self.field = field


class AttemptError(FetchGuardError):
    """A classified failure of one network attempt.

    Raised by single-attempt operations so that the retry orchestrator and
    the metrics collector can act on the failure kind without knowing how
    the attempt was made.

    Attributes:
        kind: Failure classification
        status_code: Raw upstream status code, if any
        retry_after: Server-suggested delay in seconds, if any
        url: Target URL of the attempt
    """

    def __init__(
        self,
        message: str,
        *,
        kind: FailureKind = FailureKind.UNKNOWN,
        status_code: int | None = None,
        retry_after: float | None = None,
        url: str | None = None,
    ) -> None:
        ctx = ErrorContext(source="attempt")
        ctx.details["kind"] = kind.value
        if status_code is not None:
            ctx.details["status_code"] = status_code
        if url:
            ctx.details["url"] = url
        super().__init__(message, ctx)
        self.kind = kind
        self.status_code = status_code
        self.retry_after = retry_after
        self.url = url

    @property
    def retryable(self) -> bool:
        """Whether the default policy would retry this failure."""
        if is_retryable(self.kind):
            return True
        return (
            self.kind is FailureKind.UNKNOWN
            and self.status_code in RETRYABLE_STATUS_CODES
        )

    @classmethod
    def from_status(
        cls,
        status_code: int,
        *,
        url: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> AttemptError:
        """Create an error from an upstream error status.

        Args:
            status_code: HTTP status code
            url: Request URL
            headers: Response headers (used for Retry-After)

        Returns:
            AttemptError instance
        """
        kind = classify_status(status_code) or FailureKind.UNKNOWN

        retry_after = None
        if headers:
            lowered = {k.lower(): v for k, v in headers.items()}
            retry_after_str = lowered.get("retry-after")
            if retry_after_str:
                with contextlib.suppress(ValueError):
                    retry_after = float(retry_after_str)

        return cls(
            f"HTTP {status_code}",
            kind=kind,
            status_code=status_code,
            retry_after=retry_after,
            url=url,
        )


class CircuitOpenError(FetchGuardError):
    """Raised when the circuit is open and the request is rejected."""

    kind = FailureKind.CIRCUIT_OPEN

    def __init__(
        self,
        message: str = "Circuit breaker is open",
        time_until_retry: float | None = None,
    ) -> None:
        ctx = ErrorContext(source="breaker")
        if time_until_retry is not None:
            ctx.details["time_until_retry"] = time_until_retry
        super().__init__(message, ctx)
        self.time_until_retry = time_until_retry


class ExecutionError(FetchGuardError):
    """Terminal failure of a logical request.

    Attributes:
        attempts: Number of attempts actually made
        cause: The terminal error
    """

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        cause: BaseException | None = None,
    ) -> None:
        ctx = ErrorContext(source="executor")
        ctx.details["attempts"] = attempts
        super().__init__(message, ctx)
        self.attempts = attempts
        self.cause = cause
        self.__cause__ = cause

    @property
    def kind(self) -> FailureKind:
        """Failure kind of the terminal cause."""
        if self.cause is None:
            return FailureKind.UNKNOWN
        return classify_exception(self.cause)


class RequestCancelledError(FetchGuardError):
    """Raised when a logical request is cancelled through its token."""

    def __init__(self, reason: str = "cancelled", *, attempts: int = 0) -> None:
        ctx = ErrorContext(source="cancel")
        ctx.details["attempts"] = attempts
        super().__init__(f"Request cancelled: {reason}", ctx)
        self.reason = reason
        self.attempts = attempts
