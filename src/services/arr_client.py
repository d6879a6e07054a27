"""Minimal read clients for Sonarr and Radarr (v3 API)."""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from src.config import get_settings
from src.schemas.upstream import (
    CalendarEntry,
    HealthCheck,
    HistoryRecord,
    QueueRecord,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


class ArrClient(ABC):
    """Shared HTTP plumbing for the *arr family of services."""

    queue_params: dict[str, Any] = {}
    calendar_params: dict[str, Any] = {}

    def __init__(self, url: str, api_key: str, timeout: float | None = None) -> None:
        self.base_url = url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else get_settings().upstream_timeout_seconds

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        logger.debug(f"GET {self.base_url}{endpoint}")
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{self.base_url}{endpoint}",
                params=params,
                headers={"X-Api-Key": self.api_key},
            )
            response.raise_for_status()
            return response.json()

    async def get_queue(self, page: int = 1, page_size: int = 20) -> list[QueueRecord]:
        """Get one page of the download queue."""
        data = await self._get(
            "/api/v3/queue", {"page": page, "pageSize": page_size, **self.queue_params}
        )
        return [QueueRecord.model_validate(r) for r in data.get("records", [])]

    async def get_history(
        self,
        page: int = 1,
        page_size: int = 20,
        sort_key: str = "date",
        sort_direction: str = "descending",
    ) -> list[HistoryRecord]:
        """Get one page of the history feed."""
        data = await self._get(
            "/api/v3/history",
            {
                "page": page,
                "pageSize": page_size,
                "sortKey": sort_key,
                "sortDirection": sort_direction,
            },
        )
        return [HistoryRecord.model_validate(r) for r in data.get("records", [])]

    async def get_health(self) -> list[HealthCheck]:
        """Get the current health check list."""
        data = await self._get("/api/v3/health")
        return [HealthCheck.model_validate(h) for h in data]

    async def get_calendar(self, start: str, end: str) -> list[CalendarEntry]:
        """Get releases between two ISO timestamps."""
        data = await self._get(
            "/api/v3/calendar", {"start": start, "end": end, **self.calendar_params}
        )
        entries = []
        for raw in data:
            entry = self.to_calendar_entry(raw)
            if entry is not None:
                entries.append(entry)
        return entries

    @abstractmethod
    def to_calendar_entry(self, raw: dict[str, Any]) -> CalendarEntry | None:
        """Normalize one calendar item, or None when it has no usable air date."""


class SonarrClient(ArrClient):
    """Sonarr: queue, history, health and episode calendar."""

    queue_params = {"includeEpisode": True, "includeSeries": True}
    calendar_params = {"includeSeries": True}

    def to_calendar_entry(self, raw: dict[str, Any]) -> CalendarEntry | None:
        series = raw.get("series")
        if not series:
            return None
        season = int(raw.get("seasonNumber") or 0)
        episode = int(raw.get("episodeNumber") or 0)
        return CalendarEntry(
            title=f"{series.get('title', '')} S{season:02d}E{episode:02d} - {raw.get('title', '')}",
            air_date=raw.get("airDateUtc"),
            related_id=raw.get("seriesId"),
        )


class RadarrClient(ArrClient):
    """Radarr: queue, history, health and movie calendar."""

    queue_params = {"includeMovie": True}

    def to_calendar_entry(self, raw: dict[str, Any]) -> CalendarEntry | None:
        release = raw.get("digitalRelease") or raw.get("physicalRelease") or raw.get("inCinemas")
        return CalendarEntry(
            title=f"{raw.get('title', '')} ({raw.get('year', '')})",
            air_date=parse_timestamp(release),
            related_id=raw.get("id"),
        )
