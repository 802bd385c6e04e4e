"""Root pytest fixtures for fetchguard tests."""

from __future__ import annotations

import asyncio
import random

import pytest


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays and only yields."""

    def __init__(self, real_sleep) -> None:
        self._real_sleep = real_sleep
        self.delays: list[float] = []

    async def __call__(self, delay: float, result=None):
        self.delays.append(delay)
        await self._real_sleep(0)
        return result


@pytest.fixture
def rng() -> random.Random:
    """Deterministic random source."""
    return random.Random(1234)


@pytest.fixture
def fake_clock() -> FakeClock:
    """Manually advanced clock."""
    return FakeClock()


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> SleepRecorder:
    """Replace asyncio.sleep so backoff completes instantly."""
    recorder = SleepRecorder(asyncio.sleep)
    monkeypatch.setattr(asyncio, "sleep", recorder)
    return recorder
