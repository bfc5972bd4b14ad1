"""Prometheus collectors for the BBK and speedtest.net backends."""

from .bbk import BBKCollector, BBKRunner
from .errors import ExporterError, ParseError, RunError
from .metrics import BBK, SPEEDTEST, MetricSpec, MetricTable
from .parser import QuietOutput, parse_quiet_output
from .speedtest import (
    SERVER_ID_NEAREST,
    PartialResult,
    ServerTarget,
    SpeedtestCollector,
    SpeedtestRunner,
    SubTestResult,
)
from .units import mbps_to_bytes_per_second, ms_to_seconds

__all__ = [
    "BBK",
    "BBKCollector",
    "BBKRunner",
    "ExporterError",
    "MetricSpec",
    "MetricTable",
    "PartialResult",
    "ParseError",
    "QuietOutput",
    "RunError",
    "SERVER_ID_NEAREST",
    "SPEEDTEST",
    "ServerTarget",
    "SpeedtestCollector",
    "SpeedtestRunner",
    "SubTestResult",
    "mbps_to_bytes_per_second",
    "ms_to_seconds",
    "parse_quiet_output",
]
