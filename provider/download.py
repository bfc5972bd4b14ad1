"""
Download speed test.

Each worker keeps a long-running HTTPS GET open against the server and reads
``CHUNK_SIZE`` chunks until the test window closes.
"""
from __future__ import annotations

import asyncio

import aiohttp

from .api import Server
from .constants import CHUNK_SIZE, COMMON_HEADERS, DEFAULT_CONNECTIONS, DEFAULT_DURATION, DOWNLOAD_FILE_SIZE
from .transfer import TransferResult, TransferState, run_transfer


class DownloadTester:
    """Parallel download speed tester."""

    def __init__(self, duration_seconds: float = DEFAULT_DURATION) -> None:
        self.duration_seconds = duration_seconds

    async def test(self, server: Server, connections: int = DEFAULT_CONNECTIONS) -> TransferResult:
        url = f"{server.download_url}?size={DOWNLOAD_FILE_SIZE}"

        connector = aiohttp.TCPConnector(
            ssl=True,
            limit=connections,
            limit_per_host=connections,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, connect=5, sock_read=5)
        headers = {**COMMON_HEADERS, "Accept-Encoding": "identity"}

        async with aiohttp.ClientSession(headers=headers, connector=connector, timeout=timeout) as session:

            async def _worker(state: TransferState, cid: int) -> None:
                while state.running:
                    try:
                        async with session.get(url) as resp:
                            resp.raise_for_status()
                            while state.running:
                                try:
                                    chunk = await asyncio.wait_for(resp.content.read(CHUNK_SIZE), timeout=1.0)
                                except asyncio.TimeoutError:
                                    continue
                                if not chunk:
                                    break
                                state.add(len(chunk))
                    except (aiohttp.ClientError, OSError) as exc:
                        if not state.running:
                            break
                        state.errors.append(f"connection {cid}: {exc}")
                        await asyncio.sleep(0.2)

            return await run_transfer(_worker, self.duration_seconds, connections)
