"""
Parser for ``bbk_cli --quiet`` output.

Quiet mode prints one summary line::

    download upload latency server isp [ticket] [measurement_id] [rating]

Throughput is in Mbit/s, latency in milliseconds.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .errors import ParseError

MIN_FIELDS = 5
_NUMERIC_FIELDS = ("download", "upload", "latency")


@dataclass(frozen=True)
class QuietOutput:
    """One parsed BBK measurement."""

    download_mbps: float
    upload_mbps: float
    latency_ms: float
    server: str
    isp: str
    ticket: Optional[str] = None
    measurement_id: Optional[str] = None
    rating: Optional[str] = None


def parse_quiet_output(line: str) -> QuietOutput:
    """Parse a summary line, raising ``ParseError`` if it is malformed."""
    fields = line.split()
    if len(fields) < MIN_FIELDS:
        raise ParseError(ParseError.TOO_FEW_FIELDS, line=line)

    numbers: List[float] = []
    for name, raw in zip(_NUMERIC_FIELDS, fields):
        try:
            numbers.append(float(raw))
        except ValueError:
            raise ParseError(ParseError.INVALID_NUMERIC, field=name, value=raw, line=line) from None

    extra = fields[MIN_FIELDS:] + [None] * 3
    return QuietOutput(
        download_mbps=numbers[0],
        upload_mbps=numbers[1],
        latency_ms=numbers[2],
        server=fields[3],
        isp=fields[4],
        ticket=extra[0],
        measurement_id=extra[1],
        rating=extra[2],
    )


def last_line(output: str) -> str:
    """Return the last non-empty line of *output*, stripped."""
    for line in reversed(output.splitlines()):
        if line.strip():
            return line.strip()
    return ""
