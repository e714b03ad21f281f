"""
Session management for Kollider client.

Owns the pooled aiohttp session shared by REST calls.
"""

from typing import Optional

import aiohttp

from .models.config import ConnectionConfig


class SessionManager:
    """Lazily opens one aiohttp session and closes it on shutdown."""

    def __init__(self, config: ConnectionConfig):
        self._config = config
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._session.closed

    async def create_session(self) -> aiohttp.ClientSession:
        """Return the open session, creating it on first use."""
        if self.is_open:
            return self._session

        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=20, ttl_dns_cache=300),
            timeout=aiohttp.ClientTimeout(total=self._config.timeout),
            headers={"User-Agent": "kollider-client/0.1", "Accept": "application/json"},
        )
        return self._session

    async def close_session(self) -> None:
        if self.is_open:
            await self._session.close()
        self._session = None
