"""Minimal read client for the Jellyfin server API."""

import logging
from typing import Any

import httpx

from src.config import get_settings
from src.schemas.upstream import ActivityLogEntry, MediaSession

logger = logging.getLogger(__name__)

CLIENT_NAME = "Helprr"
CLIENT_VERSION = "1.0.0"
DEVICE_NAME = "Helprr Server"
DEVICE_ID = "helprr-server"


class JellyfinClient:
    """Token-authenticated Jellyfin client."""

    def __init__(
        self, url: str, token: str, user_id: str = "", timeout: float | None = None
    ) -> None:
        self.base_url = url.rstrip("/")
        self.token = token
        self.user_id = user_id
        self.timeout = timeout if timeout is not None else get_settings().upstream_timeout_seconds

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": (
                f'MediaBrowser Token="{self.token}", Client="{CLIENT_NAME}", '
                f'Device="{DEVICE_NAME}", DeviceId="{DEVICE_ID}", Version="{CLIENT_VERSION}"'
            ),
            "X-Emby-Token": self.token,
        }

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        logger.debug(f"GET {self.base_url}{endpoint}")
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{self.base_url}{endpoint}", params=params, headers=self.headers
            )
            response.raise_for_status()
            return response.json()

    async def get_activity_log(
        self, limit: int = 50, min_date: str | None = None, start_index: int = 0
    ) -> list[ActivityLogEntry]:
        """Get server activity entries, newest first."""
        params: dict[str, Any] = {"StartIndex": start_index, "Limit": limit}
        if min_date:
            params["MinDate"] = min_date
        data = await self._get("/System/ActivityLog/Entries", params)
        return [ActivityLogEntry.model_validate(e) for e in data.get("Items", [])]

    async def get_active_sessions(self) -> list[MediaSession]:
        """Get sessions that are currently playing something."""
        data = await self._get("/Sessions")
        sessions = [MediaSession.model_validate(s) for s in data]
        return [s for s in sessions if s.now_playing_item is not None]
