"""Minimal read client for the qBittorrent Web API."""

import logging
from typing import Any

import httpx

from src.config import get_settings
from src.schemas.upstream import Torrent

logger = logging.getLogger(__name__)


class QBittorrentAuthError(Exception):
    """Raised when qBittorrent rejects the configured credentials."""


class QBittorrentClient:
    """Cookie-authenticated qBittorrent client."""

    def __init__(
        self,
        url: str,
        password: str,
        username: str = "admin",
        timeout: float | None = None,
    ) -> None:
        self.base_url = url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout if timeout is not None else get_settings().upstream_timeout_seconds
        self._sid: str | None = None

    async def _login(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            f"{self.base_url}/api/v2/auth/login",
            data={"username": self.username, "password": self.password},
        )
        response.raise_for_status()
        sid = response.cookies.get("SID")
        if not sid:
            raise QBittorrentAuthError("qBittorrent authentication failed: no SID cookie received")
        self._sid = sid

    def _cookie_header(self) -> dict[str, str]:
        return {"Cookie": f"SID={self._sid}"}

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            if self._sid is None:
                await self._login(client)
            url = f"{self.base_url}{endpoint}"
            response = await client.get(url, params=params, headers=self._cookie_header())
            if response.status_code == 403:
                # Session expired, log in once more
                logger.info("qBittorrent session expired, re-authenticating")
                await self._login(client)
                response = await client.get(url, params=params, headers=self._cookie_header())
            response.raise_for_status()
            return response.json()

    async def get_torrents(self) -> list[Torrent]:
        """Get every torrent known to the client."""
        data = await self._get("/api/v2/torrents/info")
        return [Torrent.model_validate(t) for t in data]
