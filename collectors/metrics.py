"""
Metric identity tables for both collectors.

The tables are built once at import time and never written afterwards.
Names, help strings and label sets are part of the exported contract and
must not change.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, NamedTuple, Sequence, Tuple

from prometheus_client.core import GaugeMetricFamily

BBK_NAMESPACE = "bbk"
SPEEDTEST_NAMESPACE = "speedtest"

BBK_LABELS = ("server", "isp")
SPEEDTEST_LABELS = ("server_id", "server_name", "server_country", "user_isp")


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts with underscores."""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class MetricSpec:
    """Name, help text and label names of one gauge."""

    name: str
    documentation: str
    labels: Tuple[str, ...] = ()

    def family(self) -> GaugeMetricFamily:
        if self.labels:
            return GaugeMetricFamily(self.name, self.documentation, labels=list(self.labels))
        return GaugeMetricFamily(self.name, self.documentation)

    def sample(self, value: float, label_values: Sequence[str] = ()) -> GaugeMetricFamily:
        """Return a family holding a single sample."""
        if len(label_values) != len(self.labels):
            raise ValueError(
                f"{self.name} expects {len(self.labels)} label values, got {len(label_values)}"
            )
        family = self.family()
        family.add_metric(list(label_values), value)
        return family


class MetricTable(NamedTuple):
    up: MetricSpec
    scrape_duration: MetricSpec
    latency: MetricSpec
    upload: MetricSpec
    download: MetricSpec

    def describe(self) -> List[GaugeMetricFamily]:
        return [spec.family() for spec in self]


BBK = MetricTable(
    up=MetricSpec(
        build_fq_name(BBK_NAMESPACE, "", "up"),
        "Was the last BBK measurement successful.",
    ),
    scrape_duration=MetricSpec(
        build_fq_name(BBK_NAMESPACE, "", "scrape_duration_seconds"),
        "Time to perform last BBK measurement",
    ),
    latency=MetricSpec(
        build_fq_name(BBK_NAMESPACE, "", "latency_seconds"),
        "Measured latency on last BBK measurement",
        BBK_LABELS,
    ),
    upload=MetricSpec(
        build_fq_name(BBK_NAMESPACE, "", "upload_speed_Bps"),
        "Last BBK upload measurement result",
        BBK_LABELS,
    ),
    download=MetricSpec(
        build_fq_name(BBK_NAMESPACE, "", "download_speed_Bps"),
        "Last BBK download measurement result",
        BBK_LABELS,
    ),
)

SPEEDTEST = MetricTable(
    up=MetricSpec(
        build_fq_name(SPEEDTEST_NAMESPACE, "", "up"),
        "Was the last speedtest successful.",
    ),
    scrape_duration=MetricSpec(
        build_fq_name(SPEEDTEST_NAMESPACE, "", "scrape_duration_seconds"),
        "Time to perform last speed test",
    ),
    latency=MetricSpec(
        build_fq_name(SPEEDTEST_NAMESPACE, "", "latency_seconds"),
        "Measured latency on last speed test",
        SPEEDTEST_LABELS,
    ),
    upload=MetricSpec(
        build_fq_name(SPEEDTEST_NAMESPACE, "", "upload_speed_Bps"),
        "Last upload speedtest result",
        SPEEDTEST_LABELS,
    ),
    download=MetricSpec(
        build_fq_name(SPEEDTEST_NAMESPACE, "", "download_speed_Bps"),
        "Last download speedtest result",
        SPEEDTEST_LABELS,
    ),
)
