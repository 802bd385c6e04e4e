"""
Jittered delays for backoff and request pacing.

Two flavours are provided:
- jittered_delay: symmetric jitter around a target, floored at a minimum.
  Used for humanlike pacing between independent requests.
- backoff_delay: capped exponential growth with strictly additive jitter,
  so the realised delay is never shorter than the configured backoff.
"""

from __future__ import annotations

import asyncio
import random

MIN_DELAY_SECONDS = 0.1


def jittered_delay(
    target: float,
    jitter_fraction: float = 0.2,
    rng: random.Random | None = None,
    minimum: float = MIN_DELAY_SECONDS,
) -> float:
    """Randomise a delay around a target.

    Computes ``target + target * jitter_fraction * (U(0, 1) - 0.5)``.

    Args:
        target: Target delay in seconds
        jitter_fraction: Relative width of the jitter window
        rng: Random source (module-level random if None)
        minimum: Floor for the result in seconds

    Returns:
        Delay in seconds, never below ``minimum``
    """
    source = rng or random
    jitter = target * jitter_fraction * (source.random() - 0.5)
    return max(minimum, target + jitter)


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    jitter_fraction: float = 0.3,
    rng: random.Random | None = None,
) -> float:
    """Exponential backoff delay for a zero-based attempt index.

    The exponential part is ``min(base_delay * 2**attempt, max_delay)``; jitter
    adds up to ``jitter_fraction`` of it on top.

    Args:
        attempt: Zero-based index of the attempt that just failed
        base_delay: Delay for attempt 0
        max_delay: Ceiling for the exponential part
        jitter_fraction: Maximum relative jitter added
        rng: Random source (module-level random if None)

    Returns:
        Delay in the same unit as ``base_delay``
    """
    source = rng or random
    exponential = min(base_delay * (2**attempt), max_delay)
    return exponential + exponential * jitter_fraction * source.random()


async def pace(
    target: float,
    jitter_fraction: float = 0.2,
    rng: random.Random | None = None,
) -> float:
    """Sleep for a jittered delay around ``target`` seconds.

    Returns:
        The delay actually slept, in seconds
    """
    delay = jittered_delay(target, jitter_fraction, rng)
    await asyncio.sleep(delay)
    return delay
