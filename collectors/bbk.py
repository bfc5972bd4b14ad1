"""
BBK (Bredbandskollen) collector.

Runs the ``bbk_cli`` binary once per scrape and exports download, upload and
latency as gauges labeled with the measurement server and the ISP.
"""
from __future__ import annotations

import logging
import subprocess
import time
from typing import Iterator, List, Optional

from prometheus_client.core import GaugeMetricFamily

from .errors import (
    EmptyOutput,
    MeasurementTimeout,
    NonZeroExit,
    ParseError,
    ParseFailure,
    RunError,
    StartFailure,
)
from .metrics import BBK
from .parser import QuietOutput, last_line, parse_quiet_output
from .units import mbps_to_bytes_per_second, ms_to_seconds

LOGGER = logging.getLogger(__name__)

COMMAND_TIMEOUT = 120.0  # seconds
QUIET_FLAGS = ("--quiet", "--ssl")


class BBKRunner:
    """Run the BBK binary under a deadline and parse its summary line."""

    def __init__(self, binary_path: str, timeout: float = COMMAND_TIMEOUT) -> None:
        self.binary_path = binary_path
        self.timeout = timeout

    def command(self) -> List[str]:
        return [self.binary_path, *QUIET_FLAGS]

    def run(self) -> QuietOutput:
        # subprocess.run kills and reaps the child when the timeout expires
        try:
            completed = subprocess.run(
                self.command(),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                # undecodable bytes become U+FFFD instead of raising
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise MeasurementTimeout(
                f"{self.binary_path} did not finish within {self.timeout:g}s"
            ) from exc
        except OSError as exc:
            raise StartFailure(f"failed to start {self.binary_path}: {exc}") from exc

        if completed.returncode != 0:
            raise NonZeroExit(
                f"command failed with exit status {completed.returncode}: "
                f"{last_line(completed.stderr or '') or 'no stderr output'}",
                completed.returncode,
            )

        lines = [line for line in (completed.stdout or "").splitlines() if line.strip()]
        if not lines:
            raise EmptyOutput("no output from measurement")
        for line in lines[:-1]:
            LOGGER.debug("bbk: discarding output line %r", line)

        try:
            return parse_quiet_output(lines[-1])
        except ParseError as exc:
            raise ParseFailure(str(exc)) from exc


class BBKCollector:
    """Prometheus collector running one BBK measurement per ``collect()``."""

    def __init__(
        self,
        binary_path: str,
        timeout: float = COMMAND_TIMEOUT,
        runner: Optional[BBKRunner] = None,
    ) -> None:
        self.runner = runner or BBKRunner(binary_path, timeout=timeout)

    def describe(self) -> List[GaugeMetricFamily]:
        return BBK.describe()

    def collect(self) -> Iterator[GaugeMetricFamily]:
        start = time.perf_counter()
        ok = False

        try:
            result = self.runner.run()
        except RunError as exc:
            LOGGER.error("bbk: %s: %s", exc.kind, exc)
        else:
            ok = True
            labels = (result.server, result.isp)
            if min(result.download_mbps, result.upload_mbps, result.latency_ms) < 0:
                LOGGER.warning("bbk: negative value in measurement %s", result)
            yield BBK.download.sample(mbps_to_bytes_per_second(result.download_mbps), labels)
            yield BBK.upload.sample(mbps_to_bytes_per_second(result.upload_mbps), labels)
            yield BBK.latency.sample(ms_to_seconds(result.latency_ms), labels)
            LOGGER.info(
                "bbk: %.2f Mbit/s down, %.2f Mbit/s up, %.1f ms via %s",
                result.download_mbps,
                result.upload_mbps,
                result.latency_ms,
                result.server,
            )

        yield BBK.up.sample(1.0 if ok else 0.0)
        yield BBK.scrape_duration.sample(time.perf_counter() - start)
