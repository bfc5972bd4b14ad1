"""
Output formatting for one-shot runs -- flat sample rows and JSON.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from prometheus_client.core import Metric

from collectors.units import MBITS_TO_BYTES
from provider.stats import format_latency, format_speed


def sample_rows(families: Iterable[Metric]) -> List[Dict[str, Any]]:
    """Flatten metric families into one dict per sample, in emission order."""
    rows: List[Dict[str, Any]] = []
    for family in families:
        for sample in family.samples:
            rows.append({
                "name": sample.name,
                "labels": dict(sample.labels),
                "value": sample.value,
            })
    return rows


def humanize(name: str, value: float) -> str:
    """Readable rendering of a sample value, chosen by metric name suffix."""
    if name.endswith("_speed_Bps"):
        return format_speed(value / MBITS_TO_BYTES)
    if name.endswith("_latency_seconds"):
        return format_latency(value * 1000)
    if name.endswith("_up"):
        return "up" if value == 1.0 else "down"
    if name.endswith("_seconds"):
        return f"{value:.2f} s"
    return f"{value:g}"


def all_up(rows: List[Dict[str, Any]]) -> bool:
    """True when every ``*_up`` sample reports success."""
    ups = [r["value"] for r in rows if r["name"].endswith("_up")]
    return bool(ups) and all(v == 1.0 for v in ups)


def create_result_json(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "up": all_up(rows),
        "samples": rows,
    }


def dump_json(rows: List[Dict[str, Any]]) -> str:
    return json.dumps(create_result_json(rows), indent=2, ensure_ascii=False)
