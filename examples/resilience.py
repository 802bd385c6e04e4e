#!/usr/bin/env python3
"""
Resilient fetch example.

This example demonstrates how an executor wraps single HTTP attempts:
- Concurrency limiting
- Retry with exponential backoff and jitter
- Circuit breaker
- Metrics, SLA verdict and health

Usage:
    export FETCHGUARD_MAX_ATTEMPTS=4
    python examples/resilience.py https://upstream.example/api/search
"""

import asyncio
import sys

from fetchguard import (
    CircuitOpenError,
    ExecutionError,
    FetchGuardConfig,
    OrchestratedExecutor,
    RequestDescriptor,
)
from fetchguard.resilience import RecordingObserver
from fetchguard.telemetry import FetchGuardLogger, LogLevel
from fetchguard.transport import HttpAttempt, RotatingIdentity

USER_AGENTS = [
    {"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/124.0"},
    {"User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) Safari/605.1.15"},
    {"User-Agent": "Mozilla/5.0 (X11; Linux x86_64) Firefox/125.0"},
]


async def single_request(executor: OrchestratedExecutor, fetch: HttpAttempt, url: str) -> None:
    """Execute one logical request and show its metadata."""
    print(f"Fetching {url}...")
    observer = RecordingObserver()

    try:
        result = await executor.execute(RequestDescriptor(url=url), fetch, observer=observer)
    except CircuitOpenError as e:
        print(f"Rejected, circuit open for another {e.time_until_retry:.1f}s")
        return
    except ExecutionError as e:
        print(f"Failed after {e.attempts} attempt(s): {e.kind.value}")
        return

    print(f"Status: {result.value.status_code}")
    print(f"Metadata: {result.metadata()}")
    for notification in observer.notifications:
        print(f"  retried after attempt {notification.attempt} in {notification.delay:.2f}s")
    print()


async def concurrent_requests(executor: OrchestratedExecutor, fetch: HttpAttempt, url: str) -> None:
    """Fire more requests than the limiter admits at once."""
    print("\n" + "=" * 50)
    print(f"Starting 8 concurrent requests (max {executor.limiter.capacity} in flight)...")

    requests = [RequestDescriptor(url=url, params={"page": str(i)}) for i in range(8)]
    outcomes = await asyncio.gather(
        *(executor.execute(r, fetch) for r in requests),
        return_exceptions=True,
    )

    for request, outcome in zip(requests, outcomes):
        if isinstance(outcome, BaseException):
            print(f"  page {request.params['page']}: {type(outcome).__name__}")
        else:
            print(f"  page {request.params['page']}: {outcome.attempts} attempt(s)")

    print(f"Peak in flight: {executor.limiter.get_stats()['peak_held']}")


async def main() -> None:
    """Run resilience examples."""
    url = sys.argv[1] if len(sys.argv) > 1 else "https://httpbin.org/json"
    FetchGuardLogger.configure(level=LogLevel.INFO, format="text")

    executor = OrchestratedExecutor(FetchGuardConfig.from_env(), name="example")
    async with HttpAttempt(identity=RotatingIdentity(USER_AGENTS)) as fetch:
        await single_request(executor, fetch, url)
        await concurrent_requests(executor, fetch, url)

    print("\n" + "=" * 50)
    print(executor.collector.summary())
    print(f"Health: {executor.health().status.value}")


if __name__ == "__main__":
    asyncio.run(main())
