"""
Time-boxed parallel transfers shared by the download and upload testers.

Workers add the bytes they move to a shared ``TransferState``; a sampler
coroutine turns the running total into Mbit/s samples every
``SAMPLE_INTERVAL`` seconds, ignoring the first ``WARMUP_SECONDS``.  The final
speed is the IQM of the post-warmup samples, or the plain average when the
run was too short to produce any.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List

from .constants import (
    MAX_CONNECTIONS,
    MAX_REASONABLE_SPEED,
    MIN_CONNECTIONS,
    SAMPLE_INTERVAL,
    WARMUP_SECONDS,
)
from .stats import bytes_to_mbps, calculate_iqm


@dataclass
class TransferResult:
    speed_mbps: float = 0.0
    bytes_total: int = 0
    duration_ms: float = 0.0
    samples: List[float] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def calculate(self) -> None:
        if self.samples:
            self.speed_mbps = calculate_iqm(self.samples)
        else:
            self.speed_mbps = bytes_to_mbps(self.bytes_total, self.duration_ms / 1000)


@dataclass
class TransferState:
    end_time: float
    stop: asyncio.Event
    bytes_total: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def running(self) -> bool:
        return not self.stop.is_set() and time.perf_counter() < self.end_time

    def add(self, n: int) -> None:
        self.bytes_total += n


Worker = Callable[[TransferState, int], Awaitable[None]]


async def run_transfer(worker: Worker, duration_seconds: float, connections: int) -> TransferResult:
    """Run *connections* copies of *worker* for *duration_seconds*."""
    connections = max(MIN_CONNECTIONS, min(connections, MAX_CONNECTIONS))

    start_time = time.perf_counter()
    state = TransferState(end_time=start_time + duration_seconds, stop=asyncio.Event())
    samples: List[float] = []

    async def _sampler() -> None:
        prev_bytes = 0
        prev_time = start_time

        while state.running:
            try:
                await asyncio.wait_for(state.stop.wait(), timeout=SAMPLE_INTERVAL)
                break
            except asyncio.TimeoutError:
                pass

            now = time.perf_counter()
            cur = state.bytes_total
            dt = now - prev_time
            if dt < 0.05 or cur <= prev_bytes:
                continue

            mbps = bytes_to_mbps(cur - prev_bytes, dt)
            prev_bytes = cur
            prev_time = now

            if mbps <= MAX_REASONABLE_SPEED and now - start_time >= WARMUP_SECONDS:
                samples.append(mbps)

    workers = [asyncio.create_task(worker(state, i)) for i in range(connections)]
    sampler = asyncio.create_task(_sampler())

    remaining = state.end_time - time.perf_counter()
    if remaining > 0:
        await asyncio.sleep(remaining)
    state.stop.set()

    for task in workers:
        task.cancel()
    sampler.cancel()
    await asyncio.gather(*workers, sampler, return_exceptions=True)

    result = TransferResult(
        bytes_total=state.bytes_total,
        duration_ms=(time.perf_counter() - start_time) * 1000,
        samples=samples,
        errors=list(state.errors),
    )
    result.calculate()
    return result
