#!/usr/bin/env python3
"""
Executor overhead benchmarks.

Measures the cost each resilience layer adds around a no-op attempt.
"""

import asyncio
import time
from typing import Any

from fetchguard import FetchGuardConfig, OrchestratedExecutor, RequestDescriptor
from fetchguard.resilience import (
    CircuitBreaker,
    ConcurrencyLimiter,
    LimiterConfig,
    RetryOrchestrator,
)
from fetchguard.telemetry import FetchGuardLogger, LogLevel, MetricsCollector

REQUEST = RequestDescriptor(url="https://upstream.example/api/search")


async def noop_attempt(request: RequestDescriptor, attempt: int) -> str:
    """No-op attempt for overhead measurement."""
    return "result"


async def noop_operation() -> str:
    return "result"


def _result(name: str, iterations: int, elapsed: float) -> dict[str, Any]:
    return {
        "name": name,
        "iterations": iterations,
        "elapsed_seconds": elapsed,
        "throughput_ops": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def benchmark_baseline(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark a bare attempt."""
    start = time.perf_counter()
    for i in range(iterations):
        await noop_attempt(REQUEST, i)
    return _result("Baseline (no resilience)", iterations, time.perf_counter() - start)


async def benchmark_retry(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark retry orchestration (no retries triggered)."""
    retry = RetryOrchestrator()

    start = time.perf_counter()
    for _ in range(iterations):
        await retry.run(lambda attempt: noop_attempt(REQUEST, attempt))
    return _result("RetryOrchestrator (no retries)", iterations, time.perf_counter() - start)


async def benchmark_circuit_breaker(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark circuit breaker (closed)."""
    breaker = CircuitBreaker()

    start = time.perf_counter()
    for _ in range(iterations):
        await breaker.execute(noop_operation)
    return _result("CircuitBreaker (closed)", iterations, time.perf_counter() - start)


async def benchmark_limiter(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark limiter acquire/release without contention."""
    limiter = ConcurrencyLimiter(LimiterConfig(max_concurrent=10))

    start = time.perf_counter()
    for _ in range(iterations):
        await limiter.execute(noop_operation)
    return _result("ConcurrencyLimiter (uncontended)", iterations, time.perf_counter() - start)


async def benchmark_metrics(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark metrics recording."""
    collector = MetricsCollector()

    start = time.perf_counter()
    for i in range(iterations):
        collector.record_success(float(i % 500))
    return _result("MetricsCollector (record)", iterations, time.perf_counter() - start)


async def benchmark_executor(iterations: int = 1000) -> dict[str, Any]:
    """Benchmark the full executor with the production config."""
    executor = OrchestratedExecutor(FetchGuardConfig.production())

    start = time.perf_counter()
    for _ in range(iterations):
        await executor.execute(REQUEST, noop_attempt)
    return _result("OrchestratedExecutor (production)", iterations, time.perf_counter() - start)


async def benchmark_concurrent_execution(
    concurrency: int = 100, iterations: int = 1000
) -> dict[str, Any]:
    """Benchmark concurrent execution through one executor."""
    executor = OrchestratedExecutor(
        FetchGuardConfig(limiter=LimiterConfig(max_concurrent=concurrency))
    )

    start = time.perf_counter()
    await asyncio.gather(*(executor.execute(REQUEST, noop_attempt) for _ in range(iterations)))
    result = _result(f"Concurrent ({concurrency} parallel)", iterations, time.perf_counter() - start)
    result["peak_held"] = executor.limiter.get_stats()["peak_held"]
    return result


async def run_benchmarks() -> None:
    """Run all benchmarks and print results."""
    FetchGuardLogger.configure(level=LogLevel.ERROR, format="text")

    print("=" * 60)
    print("Executor Benchmarks")
    print("=" * 60)
    print()

    benchmarks = [
        benchmark_baseline,
        benchmark_retry,
        benchmark_circuit_breaker,
        benchmark_limiter,
        benchmark_metrics,
        benchmark_executor,
    ]

    baseline_latency = 0.0
    for bench in benchmarks:
        result = await bench()
        if result["name"].startswith("Baseline"):
            baseline_latency = result["latency_us"]

        overhead = ""
        if baseline_latency > 0 and not result["name"].startswith("Baseline"):
            overhead_us = result["latency_us"] - baseline_latency
            overhead = f" (+{overhead_us:.2f}us)"

        print(f"{result['name']}:")
        print(f"  Throughput: {result['throughput_ops']:.0f} ops/sec")
        print(f"  Latency: {result['latency_us']:.2f} us/op{overhead}")
        print()

    print("Concurrent Execution:")
    for concurrency in [10, 50, 100]:
        result = await benchmark_concurrent_execution(concurrency=concurrency)
        print(
            f"  {concurrency} parallel: {result['throughput_ops']:.0f} ops/sec "
            f"(peak {result['peak_held']})"
        )


if __name__ == "__main__":
    asyncio.run(run_benchmarks())
