"""
Blocking facade over the asyncio speedtest.net client.

Each call runs in its own ``asyncio.run()`` loop, so no loop, session or
socket outlives the call that created it.  Every failure is reported as
``ProviderError``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, TypeVar

import aiohttp
import websockets.exceptions

from .api import ClientInfo, ProviderError, Server, SpeedtestAPI, find_server
from .constants import (
    DEFAULT_CONNECTIONS,
    DEFAULT_DURATION,
    DEFAULT_PING_COUNT,
    DEFAULT_SERVER_LIMIT,
)
from .download import DownloadTester
from .latency import LatencyTester
from .transfer import TransferResult
from .upload import UploadTester

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_NETWORK_ERRORS = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    websockets.exceptions.WebSocketException,
    OSError,
    ValueError,
)


def _run(coro: Awaitable[T]) -> T:
    try:
        return asyncio.run(coro)
    except ProviderError:
        raise
    except _NETWORK_ERRORS as exc:
        raise ProviderError(f"{type(exc).__name__}: {exc}") from exc


class SpeedtestNetProvider:
    """speedtest.net measurement provider with a blocking interface."""

    def __init__(
        self,
        server_limit: int = DEFAULT_SERVER_LIMIT,
        ping_count: int = DEFAULT_PING_COUNT,
        download_duration: float = DEFAULT_DURATION,
        upload_duration: float = DEFAULT_DURATION,
        connections: int = DEFAULT_CONNECTIONS,
    ) -> None:
        self.server_limit = server_limit
        self.ping_count = ping_count
        self.download_duration = download_duration
        self.upload_duration = upload_duration
        self.connections = connections

    def _with_api(self, call: Callable[[SpeedtestAPI], Awaitable[T]]) -> T:
        async def _go() -> T:
            async with SpeedtestAPI() as api:
                return await call(api)

        return _run(_go())

    # -- Discovery ----------------------------------------------------------

    def fetch_user_info(self) -> ClientInfo:
        return self._with_api(lambda api: api.get_client_info())

    def fetch_servers(self) -> List[Server]:
        return self._with_api(lambda api: api.fetch_servers(limit=self.server_limit))

    def find_server(self, servers: List[Server], ids: Iterable[int]) -> List[Server]:
        return find_server(servers, ids)

    # -- Measurements -------------------------------------------------------

    def ping_test(self, server: Server) -> float:
        """Best round-trip time to *server*, in milliseconds."""
        result = _run(LatencyTester(ping_count=self.ping_count).test_server(server))
        if not result.success:
            raise ProviderError(f"latency test against {server.hostname} failed: {result.error}")
        LOGGER.debug(
            "latency to %s: %.1f ms (jitter %.2f ms, %d pings)",
            server.hostname, result.latency_ms, result.jitter_ms, len(result.pings),
        )
        return result.latency_ms

    def download_test(self, server: Server) -> float:
        """Download throughput from *server*, in Mbit/s."""
        tester = DownloadTester(duration_seconds=self.download_duration)
        return self._throughput("download", server, _run(tester.test(server, connections=self.connections)))

    def upload_test(self, server: Server) -> float:
        """Upload throughput to *server*, in Mbit/s."""
        tester = UploadTester(duration_seconds=self.upload_duration)
        return self._throughput("upload", server, _run(tester.test(server, connections=self.connections)))

    @staticmethod
    def _throughput(name: str, server: Server, result: TransferResult) -> float:
        if result.bytes_total == 0:
            reason = result.errors[-1] if result.errors else "no data transferred"
            raise ProviderError(f"{name} test against {server.hostname} failed: {reason}")
        LOGGER.debug(
            "%s from %s: %.2f Mbit/s, %d bytes in %.0f ms",
            name, server.hostname, result.speed_mbps, result.bytes_total, result.duration_ms,
        )
        return result.speed_mbps
