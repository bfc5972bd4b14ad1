"""
Speedtest.net API client.

Handles user-info fetching and the nearest-first server list.  All HTTP work
goes through a single ``aiohttp.ClientSession`` managed via the async
context-manager protocol (``async with SpeedtestAPI() as api: ...``).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from .constants import BASE_URL, COMMON_HEADERS, DEFAULT_SERVER_LIMIT, HTTP_TIMEOUT, SERVERS_URL


class ProviderError(RuntimeError):
    """The speedtest.net service could not deliver a result."""


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass
class Server:
    """A single Ookla speedtest server."""

    id: int
    name: str
    sponsor: str
    hostname: str
    port: int
    country: str
    cc: str
    distance: float

    @classmethod
    def from_dict(cls, data: Any) -> Server:
        """Build a server from one server-list entry; malformed entries raise ``ProviderError``."""
        if not isinstance(data, dict):
            raise ProviderError(f"malformed server entry: {data!r}")

        try:
            return cls(
                id=int(data.get("id", 0)),
                name=str(data.get("name") or ""),
                sponsor=str(data.get("sponsor") or ""),
                hostname=str(data.get("hostname") or str(data.get("host") or "").split(":")[0]),
                port=int(data.get("port", 8080)),
                country=str(data.get("country") or ""),
                cc=str(data.get("cc") or ""),
                distance=float(data.get("distance", 0)),
            )
        except (TypeError, ValueError) as exc:
            raise ProviderError(f"malformed server entry {data!r}: {exc}") from exc

    # -- Derived URLs -------------------------------------------------------

    @property
    def ws_url(self) -> str:
        """WebSocket endpoint for latency testing."""
        return f"wss://{self.hostname}:{self.port}/ws?"

    @property
    def download_url(self) -> str:
        return f"https://{self.hostname}:{self.port}/download"

    @property
    def upload_url(self) -> str:
        return f"https://{self.hostname}:{self.port}/upload"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "sponsor": self.sponsor,
            "hostname": self.hostname,
            "port": self.port,
            "country": self.country,
            "cc": self.cc,
            "distance": self.distance,
        }


@dataclass
class ClientInfo:
    """What speedtest.net knows about the measuring host."""

    ip: str
    isp: str
    country: str


def find_server(servers: List[Server], ids: Iterable[int]) -> List[Server]:
    """
    Return the servers matching *ids*, in request order.

    When nothing matches, the nearest server is returned instead so callers
    must compare IDs themselves.  An empty *servers* list is an error.
    """
    if not servers:
        raise ProviderError("no servers available")

    by_id = {s.id: s for s in servers}
    found = [by_id[i] for i in ids if i in by_id]
    return found or [servers[0]]


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

class SpeedtestAPI:
    """Async context-manager wrapping the Speedtest.net REST API."""

    def __init__(self) -> None:
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> SpeedtestAPI:
        self._session = aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            timeout=aiohttp.ClientTimeout(total=HTTP_TIMEOUT),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "SpeedtestAPI must be used as an async context manager "
                "(async with SpeedtestAPI() as api: ...)"
            )
        return self._session

    async def get_client_info(self) -> ClientInfo:
        """Scrape client IP / ISP / country from the speedtest.net home page."""
        session = self._ensure_session()

        async with session.get(BASE_URL) as resp:
            resp.raise_for_status()
            html = await resp.text()

        return parse_client_info(html)

    async def fetch_servers(self, limit: int = DEFAULT_SERVER_LIMIT) -> List[Server]:
        """Return up to *limit* servers, nearest first."""
        session = self._ensure_session()

        params = {
            "engine": "js",
            "https_functional": "true",
            "limit": str(limit),
        }

        async with session.get(SERVERS_URL, params=params) as resp:
            resp.raise_for_status()
            data = await resp.json(content_type=None)

        if not isinstance(data, list):
            raise ProviderError(f"unexpected server list payload: {type(data).__name__}")

        servers = [Server.from_dict(s) for s in data]
        servers.sort(key=lambda s: s.distance)
        return servers


def parse_client_info(html: str) -> ClientInfo:
    def _extract(pattern: str) -> str:
        m = re.search(pattern, html)
        return m.group(1) if m else ""

    isp = _extract(r'"ispName"\s*:\s*"([^"]+)"')
    if not isp:
        raise ProviderError("ISP name not found in speedtest.net response")

    return ClientInfo(
        ip=_extract(r'"ipAddress"\s*:\s*"([^"]+)"'),
        isp=isp,
        country=_extract(r'"countryCode"\s*:\s*"([^"]+)"'),
    )
