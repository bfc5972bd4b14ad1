"""
Upload speed test.

Each worker streams a chunked HTTPS POST body cut from a pre-generated
random buffer until the test window closes.
"""
from __future__ import annotations

import asyncio
import os
from typing import AsyncIterator

import aiohttp

from .api import Server
from .constants import (
    CHUNK_SIZE,
    COMMON_HEADERS,
    DEFAULT_CONNECTIONS,
    DEFAULT_DURATION,
    UPLOAD_BUFFER_SIZE,
)
from .transfer import TransferResult, TransferState, run_transfer


class UploadTester:
    """Parallel upload speed tester."""

    def __init__(self, duration_seconds: float = DEFAULT_DURATION) -> None:
        self.duration_seconds = duration_seconds
        self._buffer = os.urandom(UPLOAD_BUFFER_SIZE)

    def _chunks(self, state: TransferState) -> AsyncIterator[bytes]:
        async def _stream() -> AsyncIterator[bytes]:
            view = memoryview(self._buffer)
            pos = 0
            while state.running:
                if pos + CHUNK_SIZE > len(view):
                    pos = 0
                chunk = bytes(view[pos : pos + CHUNK_SIZE])
                pos += CHUNK_SIZE
                state.add(len(chunk))
                yield chunk
                await asyncio.sleep(0)

        return _stream()

    async def test(self, server: Server, connections: int = DEFAULT_CONNECTIONS) -> TransferResult:
        connector = aiohttp.TCPConnector(
            ssl=True,
            limit=connections,
            limit_per_host=connections,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, connect=5, sock_read=5)
        headers = {**COMMON_HEADERS, "Content-Type": "application/octet-stream"}

        async with aiohttp.ClientSession(headers=headers, connector=connector, timeout=timeout) as session:

            async def _worker(state: TransferState, cid: int) -> None:
                while state.running:
                    try:
                        async with session.post(server.upload_url, data=self._chunks(state)) as resp:
                            await resp.read()
                    except (aiohttp.ClientError, OSError) as exc:
                        if not state.running:
                            break
                        state.errors.append(f"connection {cid}: {exc}")
                        await asyncio.sleep(0.1)

            return await run_transfer(_worker, self.duration_seconds, connections)
