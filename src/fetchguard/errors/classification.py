"""
Failure classification for upstream attempts.

Maps HTTP status codes and raised exceptions onto a small set of failure
kinds that drive retry decisions and metrics.
"""

from __future__ import annotations

import asyncio
import json
from enum import Enum

import httpx
import pydantic


class FailureKind(str, Enum):
    """Classification of a failed attempt."""

    TRANSPORT = "transport"
    """Connection reset, timeout, TLS/protocol negotiation failure."""

    ANTI_AUTOMATION = "anti_automation"
    """Upstream recognised the client as automated (403/418-style blocks)."""

    SERVER_ERROR = "server_error"
    """Transient upstream failure (5xx)."""

    RATE_LIMITED = "rate_limited"
    """Throttled by the upstream (429)."""

    FATAL = "fatal"
    """Malformed response, schema violation or explicit non-retryable signal."""

    CIRCUIT_OPEN = "circuit_open"
    """Rejected by the circuit breaker before any attempt was made."""

    UNKNOWN = "unknown"
    """Anything that could not be classified."""

    @property
    def is_throttling(self) -> bool:
        """Whether the upstream is actively pushing back on this client."""
        return self in (FailureKind.RATE_LIMITED, FailureKind.ANTI_AUTOMATION)


RETRYABLE_STATUS_CODES: frozenset[int] = frozenset(
    {429, 500, 502, 503, 504, 520, 521, 522, 524}
)

_RETRYABLE_KINDS: frozenset[FailureKind] = frozenset(
    {
        FailureKind.TRANSPORT,
        FailureKind.ANTI_AUTOMATION,
        FailureKind.SERVER_ERROR,
        FailureKind.RATE_LIMITED,
    }
)

_STATUS_MAPPING: dict[int, FailureKind] = {
    403: FailureKind.ANTI_AUTOMATION,
    407: FailureKind.TRANSPORT,  # proxy gateway refused the tunnel
    418: FailureKind.ANTI_AUTOMATION,
    429: FailureKind.RATE_LIMITED,
}


def classify_status(status_code: int) -> FailureKind | None:
    """Classify an HTTP status code.

    Args:
        status_code: HTTP status code

    Returns:
        FailureKind for error statuses, None for 1xx-3xx
    """
    if status_code < 400:
        return None
    if status_code in _STATUS_MAPPING:
        return _STATUS_MAPPING[status_code]
    if status_code >= 500:
        return FailureKind.SERVER_ERROR
    return FailureKind.FATAL


def classify_exception(error: BaseException) -> FailureKind:
    """Classify an exception raised by a single attempt.

    Classified errors (anything carrying a ``kind`` attribute) are trusted;
    otherwise transport-level exceptions map to TRANSPORT and decoding or
    validation failures map to FATAL.

    Args:
        error: The exception raised by the attempt

    Returns:
        FailureKind for the error
    """
    kind = getattr(error, "kind", None)
    if isinstance(kind, FailureKind):
        return kind

    if isinstance(error, httpx.HTTPStatusError):
        return classify_status(error.response.status_code) or FailureKind.UNKNOWN
    if isinstance(
        error,
        (httpx.TransportError, asyncio.TimeoutError, TimeoutError, ConnectionError),
    ):
        return FailureKind.TRANSPORT
    if isinstance(error, (json.JSONDecodeError, pydantic.ValidationError)):
        return FailureKind.FATAL
    return FailureKind.UNKNOWN


def is_retryable(kind: FailureKind) -> bool:
    """Check if a failure kind is retryable by default."""
    return kind in _RETRYABLE_KINDS
