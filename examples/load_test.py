#!/usr/bin/env python3
"""
Load test example.

Drives a batch of requests through one executor and prints the summary.
Exits non-zero when the run misses the SLA.

Usage:
    python examples/load_test.py https://upstream.example/api/search 1200 15
"""

import asyncio
import sys

from fetchguard import FetchGuardConfig, OrchestratedExecutor, RequestDescriptor
from fetchguard.batch import LoadRunner
from fetchguard.transport import HttpAttempt

QUERIES = ["iphone", "samsung galaxy", "macbook", "nike", "headphones", "camera"]


def progress(done: int, total: int) -> None:
    if done % 50 == 0 or done == total:
        print(f"  {done}/{total}")


async def main() -> int:
    """Run the load test."""
    url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:3000/search"
    total = int(sys.argv[2]) if len(sys.argv) > 2 else 1200
    concurrency = int(sys.argv[3]) if len(sys.argv) > 3 else 15

    executor = OrchestratedExecutor(FetchGuardConfig.production(), name="load-test")
    templates = [RequestDescriptor(url=url, params={"query": q}) for q in QUERIES]

    async with HttpAttempt() as fetch:
        runner = LoadRunner(executor, fetch, concurrency=concurrency, pacing_ms=50)
        summary = await runner.run_repeated(templates, total, on_progress=progress)

    print(summary.report())
    print()
    print(executor.collector.summary())
    return 0 if summary.sla_compliant else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
