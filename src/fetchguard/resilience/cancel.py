"""
Cooperative cancellation for logical requests.

A CancelToken is threaded through the executor into the retry orchestrator,
which checks it before each attempt and wakes up early from backoff sleeps
when it fires.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from fetchguard.errors import RequestCancelledError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


class CancelReason(str, Enum):
    """Reasons for cancellation."""

    USER_REQUEST = "user_request"
    TIMEOUT = "timeout"
    SHUTDOWN = "shutdown"


@dataclass
class CancelState:
    """State of a cancellation token.

    Attributes:
        cancelled: Whether cancellation was requested
        reason: Reason for cancellation
        timestamp: Time of cancellation
    """

    cancelled: bool = False
    reason: CancelReason | None = None
    timestamp: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class CancelToken:
    """Cancellation token for a logical request.

    Example:
        >>> token = CancelToken()
        >>> task = asyncio.create_task(
        ...     executor.execute(request, attempt, cancel_token=token)
        ... )
        >>> token.cancel(CancelReason.SHUTDOWN)
    """

    def __init__(self) -> None:
        self._state = CancelState()
        self._event = asyncio.Event()

    def cancel(
        self,
        reason: CancelReason = CancelReason.USER_REQUEST,
        **metadata: Any,
    ) -> bool:
        """Request cancellation.

        Args:
            reason: Reason for cancellation
            **metadata: Additional metadata

        Returns:
            True if cancellation was newly requested, False if already cancelled
        """
        if self._state.cancelled:
            return False

        self._state.cancelled = True
        self._state.reason = reason
        self._state.timestamp = time.time()
        self._state.metadata.update(metadata)
        self._event.set()
        return True

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._state.cancelled

    @property
    def reason(self) -> CancelReason | None:
        """Get cancellation reason."""
        return self._state.reason

    @property
    def state(self) -> CancelState:
        """Get full cancellation state."""
        return self._state

    async def sleep(
        self,
        delay: float,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> bool:
        """Sleep for ``delay`` seconds unless cancelled first.

        Args:
            delay: Delay in seconds
            sleep: Coroutine that does the sleeping (a timed wait on the
                token if None)

        Returns:
            True if the sleep was cut short by cancellation
        """
        if self._state.cancelled:
            return True
        if sleep is None:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._event.wait(), timeout=delay)
            return self._state.cancelled

        sleeper = asyncio.ensure_future(sleep(delay))
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            waiter.cancel()

        if sleeper.done() and not sleeper.cancelled():
            sleeper.result()
        return self._state.cancelled

    def raise_if_cancelled(self, attempts: int = 0) -> None:
        """Raise RequestCancelledError if cancelled.

        Args:
            attempts: Attempts already made, recorded on the error
        """
        if self._state.cancelled:
            reason = self._state.reason or CancelReason.USER_REQUEST
            raise RequestCancelledError(reason.value, attempts=attempts)

    def reset(self) -> None:
        """Reset the token to uncancelled state."""
        self._state = CancelState()
        self._event.clear()
