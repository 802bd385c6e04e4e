"""
Per-attempt and per-request result types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from fetchguard.errors import FailureKind, classify_exception

if TYPE_CHECKING:
    from fetchguard.types.request import RequestDescriptor

T = TypeVar("T")


@dataclass(frozen=True)
class AttemptOutcome:
    """Outcome of one attempt, forwarded to metrics.

    Attributes:
        success: Whether the attempt succeeded
        latency_ms: Attempt latency in milliseconds
        failure_kind: Classification of the failure (None on success)
        status_code: Raw upstream status code, if known
        attempt: Zero-based attempt index within the logical request
    """

    success: bool
    latency_ms: float
    failure_kind: FailureKind | None = None
    status_code: int | None = None
    attempt: int = 0

    @classmethod
    def succeeded(cls, latency_ms: float, attempt: int = 0) -> AttemptOutcome:
        """Create a successful outcome."""
        return cls(success=True, latency_ms=latency_ms, attempt=attempt)

    @classmethod
    def from_error(
        cls, error: BaseException, latency_ms: float, attempt: int = 0
    ) -> AttemptOutcome:
        """Create a failed outcome by classifying an exception."""
        return cls(
            success=False,
            latency_ms=latency_ms,
            failure_kind=classify_exception(error),
            status_code=getattr(error, "status_code", None),
            attempt=attempt,
        )


@dataclass
class ExecutionResult(Generic[T]):
    """Result of a logical request with its execution metadata.

    Attributes:
        value: Value returned by the successful attempt
        request: The request descriptor that was executed
        attempts: Number of attempts made
        latency_ms: Wall time of the logical request, queueing included
        delays: Backoff delays slept between attempts, in seconds
    """

    value: T
    request: RequestDescriptor
    attempts: int = 1
    latency_ms: float = 0.0
    delays: list[float] = field(default_factory=list)

    @property
    def retried(self) -> bool:
        """Check if the request needed more than one attempt."""
        return self.attempts > 1

    def metadata(self) -> dict[str, Any]:
        """Execution metadata suitable for an API response envelope."""
        return {
            "request_id": self.request.request_id,
            "source_url": self.request.url,
            "attempts": self.attempts,
            "latency_ms": round(self.latency_ms, 2),
        }
