"""
Concurrency limiting.

Bounds the number of simultaneously in-flight logical requests and queues
callers beyond that bound.
"""

from __future__ import annotations

import asyncio
import itertools
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from fetchguard.errors import ConfigError
from fetchguard.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

T = TypeVar("T")

logger = get_logger("fetchguard.limiter")


@dataclass
class LimiterConfig:
    """Configuration for the concurrency limiter.

    Attributes:
        max_concurrent: Maximum simultaneously held slots
    """

    max_concurrent: int = 10

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ConfigError(
                "max_concurrent must be at least 1", field="max_concurrent"
            )


class LimiterToken:
    """Proof of a held slot; pass it back to ``release``."""

    __slots__ = ("id", "released")

    def __init__(self, token_id: int) -> None:
        self.id = token_id
        self.released = False

    def __repr__(self) -> str:
        return f"LimiterToken(id={self.id}, released={self.released})"


class ConcurrencyLimiter:
    """Bounds the number of in-flight operations.

    Callers beyond the capacity wait until a slot frees up. Capacity may be
    changed at runtime; when reduced, already-held slots drain normally and
    no new slot is granted until the held count is below the new capacity.

    Example:
        >>> limiter = ConcurrencyLimiter(LimiterConfig(max_concurrent=5))
        >>> async with limiter.slot():
        ...     await make_request()
    """

    def __init__(self, config: LimiterConfig | None = None) -> None:
        """Initialize limiter.

        Args:
            config: Limiter configuration

        Raises:
            ConfigError: If capacity is below 1
        """
        self._config = config or LimiterConfig()
        self._capacity = self._config.max_concurrent
        self._condition = asyncio.Condition()
        self._ids = itertools.count(1)

        self._held = 0
        self._waiting = 0
        self._peak_held = 0
        self._total_acquired = 0

    @property
    def capacity(self) -> int:
        """Get current capacity."""
        return self._capacity

    @property
    def held(self) -> int:
        """Get number of currently held slots."""
        return self._held

    @property
    def available(self) -> int:
        """Get number of free slots."""
        return max(0, self._capacity - self._held)

    @property
    def waiting(self) -> int:
        """Get number of callers queued for a slot."""
        return self._waiting

    async def acquire(self) -> LimiterToken:
        """Wait for a free slot and take it.

        Returns:
            Token to hand back to ``release``
        """
        async with self._condition:
            self._waiting += 1
            try:
                await self._condition.wait_for(lambda: self._held < self._capacity)
            finally:
                self._waiting -= 1

            self._held += 1
            self._peak_held = max(self._peak_held, self._held)
            self._total_acquired += 1
            return LimiterToken(next(self._ids))

    async def release(self, token: LimiterToken) -> None:
        """Release a slot. Releasing the same token twice is a no-op."""
        async with self._condition:
            if token.released:
                return
            token.released = True
            self._held -= 1
            self._condition.notify_all()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[LimiterToken]:
        """Hold a slot for the duration of the block.

        The slot is released on every exit path, cancellation included.
        """
        token = await self.acquire()
        try:
            yield token
        finally:
            await asyncio.shield(self.release(token))

    async def resize(self, capacity: int) -> None:
        """Change capacity at runtime.

        Args:
            capacity: New capacity

        Raises:
            ConfigError: If capacity is below 1
        """
        if capacity < 1:
            raise ConfigError("capacity must be at least 1", field="max_concurrent")

        async with self._condition:
            previous = self._capacity
            self._capacity = capacity
            self._condition.notify_all()

        logger.info("Limiter resized", previous=previous, capacity=capacity)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Execute an operation while holding a slot."""
        async with self.slot():
            return await operation()

    def get_stats(self) -> dict[str, Any]:
        """Get limiter statistics."""
        return {
            "capacity": self._capacity,
            "held": self._held,
            "waiting": self._waiting,
            "peak_held": self._peak_held,
            "total_acquired": self._total_acquired,
        }

    def __repr__(self) -> str:
        return f"ConcurrencyLimiter(held={self._held}/{self._capacity})"
