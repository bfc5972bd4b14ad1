"""
Latency over the Ookla WebSocket protocol.

After the connection opens the server greets with ``HELLO <version>``,
``YOURIP <ip>`` and ``CAPABILITIES ...``.  Every ``PING <client ms>`` is then
answered with ``PONG <server ms>``; the round trip is timed locally.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import List, Optional, Union

import websockets
import websockets.exceptions

from .api import Server
from .constants import COMMON_HEADERS, DEFAULT_PING_COUNT
from .stats import calculate_jitter

CONNECT_TIMEOUT = 5.0
GREETING_TIMEOUT = 2.0
GREETING_LINES = 3
FRAME_TIMEOUT = 0.5
PONG_TIMEOUT = 5.0
MAX_MISSES = 2

Frame = Union[str, bytes]


def frame_text(frame: Frame) -> str:
    """Text of a WebSocket frame; binary frames are decoded leniently."""
    if isinstance(frame, bytes):
        return frame.decode("utf-8", errors="replace")
    return frame


@dataclass
class LatencyResult:
    server: Server
    pings: List[float] = field(default_factory=list)
    latency_ms: float = 0.0
    jitter_ms: float = 0.0
    success: bool = True
    error: Optional[str] = None
    server_version: str = ""

    def calculate(self) -> None:
        """Best round trip and jitter; no replies at all is a failure."""
        if not self.pings:
            self.success = False
            self.error = self.error or "no PONG replies received"
            return
        self.latency_ms = min(self.pings)
        self.jitter_ms = calculate_jitter(self.pings)


class LatencyTester:
    """
    Ping one Ookla server over WebSocket.

    Stops after ``ping_count`` replies or ``MAX_MISSES`` misses in a row.
    """

    def __init__(self, ping_count: int = DEFAULT_PING_COUNT, timeout: float = PONG_TIMEOUT) -> None:
        self.ping_count = ping_count
        self.timeout = timeout

    async def test_server(self, server: Server) -> LatencyResult:
        result = LatencyResult(server=server)

        try:
            async with websockets.connect(
                server.ws_url,
                additional_headers=COMMON_HEADERS,
                ping_interval=None,
                close_timeout=2,
                open_timeout=CONNECT_TIMEOUT,
            ) as ws:
                result.server_version = await self._greeting(ws)
                await self._collect_pings(ws, result.pings)
        except asyncio.TimeoutError:
            result.success = False
            result.error = "connection timeout"
        except (websockets.exceptions.WebSocketException, OSError) as exc:
            result.success = False
            result.error = str(exc) or type(exc).__name__

        if result.success:
            result.calculate()
        return result

    async def _collect_pings(self, ws, pings: List[float]) -> None:
        misses = 0
        while len(pings) < self.ping_count and misses < MAX_MISSES:
            rtt = await self._ping_once(ws)
            if rtt is None:
                misses += 1
            else:
                misses = 0
                pings.append(rtt)

    @staticmethod
    async def _greeting(ws) -> str:
        """Consume the greeting and return the version announced in HELLO."""
        version = ""
        deadline = time.perf_counter() + GREETING_TIMEOUT

        for _ in range(GREETING_LINES):
            if time.perf_counter() >= deadline:
                break
            try:
                line = frame_text(await asyncio.wait_for(ws.recv(), timeout=FRAME_TIMEOUT))
            except asyncio.TimeoutError:
                break
            parts = line.split()
            if len(parts) >= 2 and parts[0] == "HELLO":
                version = parts[1]

        return version

    async def _ping_once(self, ws) -> Optional[float]:
        """Round trip of one PING in ms, or None on timeout or a stray reply."""
        sent = time.perf_counter()
        await ws.send(f"PING {int(sent * 1000)}")

        try:
            reply = frame_text(await asyncio.wait_for(ws.recv(), timeout=self.timeout))
        except asyncio.TimeoutError:
            return None

        if not reply.startswith("PONG"):
            return None
        return (time.perf_counter() - sent) * 1000
