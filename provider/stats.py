"""Sample statistics and display formatting for speedtest.net measurements."""
from __future__ import annotations

import statistics
from typing import List, Sequence


def calculate_jitter(samples: Sequence[float]) -> float:
    """Mean absolute difference between consecutive round trips."""
    gaps: List[float] = [abs(b - a) for a, b in zip(samples, samples[1:])]
    return statistics.mean(gaps) if gaps else 0.0


def calculate_iqm(samples: Sequence[float]) -> float:
    """
    Interquartile mean of throughput samples.

    Fewer than four samples have no meaningful quartiles; their plain mean
    is returned instead.
    """
    if not samples:
        return 0.0
    n = len(samples)
    if n < 4:
        return statistics.mean(samples)
    return statistics.mean(sorted(samples)[n // 4 : (3 * n) // 4])


def bytes_to_mbps(num_bytes: int, seconds: float) -> float:
    if seconds <= 0:
        return 0.0
    return num_bytes * 8 / seconds / 1e6


def format_speed(speed_mbps: float) -> str:
    if speed_mbps < 1000:
        return f"{speed_mbps:.2f} Mbps"
    return f"{speed_mbps / 1000:.2f} Gbps"


def format_latency(latency_ms: float) -> str:
    if latency_ms < 1000:
        return f"{latency_ms:.1f} ms"
    return f"{latency_ms / 1000:.2f} s"
