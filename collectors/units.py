"""Conversions from backend-native units to the exported base units."""
from __future__ import annotations

MBITS_TO_BYTES = 125_000  # 1 Mbit/s = 125000 bytes/s
MS_PER_SECOND = 1000.0


def mbps_to_bytes_per_second(mbps: float) -> float:
    """Megabits per second (decimal) to bytes per second."""
    return mbps * MBITS_TO_BYTES


def ms_to_seconds(ms: float) -> float:
    return ms / MS_PER_SECOND
