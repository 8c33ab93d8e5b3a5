#!/usr/bin/env python3
"""
Request building and reconciliation benchmarks.

Measures the per-request overhead of the library without network I/O.
"""

import asyncio
import time
from typing import Any

from oneshot_http import ResponseHead, ajax
from oneshot_http.client import ResponseReconciler, build_wire_request
from oneshot_http.transport import Connection, Transport
from oneshot_http.types import RequestSpec


class _NullObserver:
    def next(self, value: Any) -> None:
        pass

    def error(self, error: BaseException) -> None:
        raise error

    def complete(self) -> None:
        pass


class _CannedConnection(Connection):
    def __init__(self, body: bytes) -> None:
        self._body = body
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def write(self, body: bytes) -> None:
        pass

    async def events(self):
        yield ResponseHead(200, {"content-type": "application/json"})
        yield self._body

    def destroy(self) -> None:
        self._destroyed = True


class _CannedTransport(Transport):
    def __init__(self, body: bytes) -> None:
        self._body = body

    def open(self, request: Any) -> Connection:
        return _CannedConnection(self._body)


def benchmark_build_wire_request(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark spec to wire request conversion."""
    spec = RequestSpec(
        url="https://api.example.com/items?sort=asc",
        method="POST",
        headers={"Authorization": "Bearer token", "Content-Type": "text/html"},
        body={"name": "item", "tags": ["a", "b"], "price": 9.5},
        params={"limit": 10, "active": True},
    )

    start = time.perf_counter()
    for _ in range(iterations):
        build_wire_request(spec)
    elapsed = time.perf_counter() - start

    return {
        "name": "build_wire_request",
        "iterations": iterations,
        "elapsed_seconds": elapsed,
        "throughput_ops": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


def benchmark_reconciler(iterations: int = 10000, chunks: int = 16) -> dict[str, Any]:
    """Benchmark chunk accumulation and JSON decoding."""
    payload = b'{"items": [' + b",".join(b'{"id": %d}' % i for i in range(200)) + b"]}"
    size = len(payload) // chunks + 1
    parts = [payload[i : i + size] for i in range(0, len(payload), size)]

    start = time.perf_counter()
    for _ in range(iterations):
        reconciler: ResponseReconciler[Any] = ResponseReconciler(_NullObserver())
        reconciler.begin()
        reconciler.on_response(200)
        for part in parts:
            reconciler.on_data(part)
        reconciler.on_end()
    elapsed = time.perf_counter() - start

    return {
        "name": "ResponseReconciler",
        "iterations": iterations,
        "elapsed_seconds": elapsed,
        "throughput_ops": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def benchmark_ajax_round_trip(iterations: int = 2000) -> dict[str, Any]:
    """Benchmark a full ajax() call over an in-memory transport."""
    transport = _CannedTransport(b'{"ok": true}')

    start = time.perf_counter()
    for _ in range(iterations):
        await ajax({"url": "https://api.example.com/ping"}, transport=transport)
    elapsed = time.perf_counter() - start

    return {
        "name": "ajax (in-memory)",
        "iterations": iterations,
        "elapsed_seconds": elapsed,
        "throughput_ops": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def run_benchmarks() -> None:
    """Run all benchmarks and print results."""
    print("=" * 60)
    print("Request Benchmarks")
    print("=" * 60)
    print()

    results = [
        benchmark_build_wire_request(),
        benchmark_reconciler(),
        await benchmark_ajax_round_trip(),
    ]

    for result in results:
        print(f"{result['name']}:")
        print(f"  Iterations: {result['iterations']}")
        print(f"  Elapsed: {result['elapsed_seconds']:.4f}s")
        print(f"  Throughput: {result['throughput_ops']:.0f} ops/sec")
        print(f"  Latency: {result['latency_us']:.2f} µs/op")
        print()


if __name__ == "__main__":
    asyncio.run(run_benchmarks())
