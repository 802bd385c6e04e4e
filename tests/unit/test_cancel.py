"""Tests for cancel module."""

import asyncio

import pytest

from fetchguard.errors import RequestCancelledError
from fetchguard.resilience import CancelReason, CancelToken


class TestCancelToken:
    """Tests for CancelToken."""

    def test_initial_state(self) -> None:
        """Test initial token state."""
        token = CancelToken()
        assert token.is_cancelled is False
        assert token.reason is None

    def test_cancel(self) -> None:
        """Test cancellation."""
        token = CancelToken()
        result = token.cancel(CancelReason.SHUTDOWN)

        assert result is True
        assert token.is_cancelled is True
        assert token.reason == CancelReason.SHUTDOWN
        assert token.state.timestamp is not None

    def test_cancel_twice(self) -> None:
        """Test cancelling twice returns False."""
        token = CancelToken()
        assert token.cancel() is True
        assert token.cancel() is False

    def test_cancel_with_metadata(self) -> None:
        """Test cancellation with metadata."""
        token = CancelToken()
        token.cancel(CancelReason.TIMEOUT, deadline_ms=500)
        assert token.state.metadata["deadline_ms"] == 500

    def test_raise_if_cancelled(self) -> None:
        """Test raising once cancelled."""
        token = CancelToken()
        token.raise_if_cancelled()

        token.cancel(CancelReason.TIMEOUT)
        with pytest.raises(RequestCancelledError) as exc_info:
            token.raise_if_cancelled(attempts=2)
        assert exc_info.value.reason == "timeout"
        assert exc_info.value.attempts == 2

    def test_reset(self) -> None:
        """Test resetting a cancelled token."""
        token = CancelToken()
        token.cancel()
        token.reset()
        assert token.is_cancelled is False

    @pytest.mark.asyncio
    async def test_sleep_runs_full_delay(self) -> None:
        """Test sleep returns False when not cancelled."""
        token = CancelToken()
        assert await token.sleep(0.01) is False

    @pytest.mark.asyncio
    async def test_sleep_cut_short(self) -> None:
        """Test cancellation wakes a sleeper early."""
        token = CancelToken()

        async def cancel_later() -> None:
            await asyncio.sleep(0.01)
            token.cancel()

        asyncio.create_task(cancel_later())
        cancelled = await asyncio.wait_for(token.sleep(30.0), timeout=1.0)
        assert cancelled is True

    @pytest.mark.asyncio
    async def test_sleep_uses_injected_sleep(self) -> None:
        """Test the delay is handed to a custom sleep coroutine."""
        token = CancelToken()
        slept: list[float] = []

        async def fake_sleep(delay: float) -> None:
            slept.append(delay)

        cancelled = await asyncio.wait_for(token.sleep(30.0, fake_sleep), timeout=1.0)
        assert cancelled is False
        assert slept == [30.0]

    @pytest.mark.asyncio
    async def test_injected_sleep_cut_short(self) -> None:
        """Test cancellation wakes a custom sleep that never finishes."""
        token = CancelToken()
        never = asyncio.Event()

        async def blocking_sleep(delay: float) -> None:
            await never.wait()

        async def cancel_soon() -> None:
            await asyncio.sleep(0)
            token.cancel()

        asyncio.create_task(cancel_soon())
        cancelled = await asyncio.wait_for(token.sleep(30.0, blocking_sleep), timeout=1.0)
        assert cancelled is True
