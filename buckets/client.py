from __future__ import annotations

from typing import Optional

import aiohttp


class PayloadTooLarge(Exception):
    pass


class BucketsClient:
    """Async client for a running buckets server."""

    def __init__(self, session: aiohttp.ClientSession, base_url: str, *, timeout_s: float = 20.0) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_s)

    def _url(self, key: str = "") -> str:
        return f"{self.base_url}/{key.lstrip('/')}"

    async def upload(self, data: bytes, path: Optional[str] = None) -> str:
        """Store ``data`` (under ``path`` if given) and return its location."""
        async with self.session.post(self._url(path or ""), data=data, timeout=self.timeout) as resp:
            if resp.status == 413:
                raise PayloadTooLarge(f"{len(data)} bytes rejected by {self.base_url}")
            resp.raise_for_status()
            return (await resp.text()).strip()

    async def download(self, key: str) -> Optional[bytes]:
        async with self.session.get(self._url(key), timeout=self.timeout) as resp:
            if resp.status == 404:
                return None
            resp.raise_for_status()
            return await resp.read()

    async def delete(self, key: str) -> bool:
        async with self.session.delete(self._url(key), timeout=self.timeout) as resp:
            if resp.status == 404:
                return False
            resp.raise_for_status()
            return True
