"""Pydantic schemas for the upstream service payloads the pollers read."""

import re
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# .NET services emit 7 fractional digits, datetime accepts at most 6
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an upstream ISO timestamp into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = _FRACTION_RE.sub(r"\1", str(value).strip())
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


class UpstreamModel(BaseModel):
    """Base for upstream payloads: ignore unknown keys, accept python names."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# Sonarr / Radarr


class QueueRecord(UpstreamModel):
    """One entry of an *arr download queue."""

    id: int
    title: str = ""
    download_state: str | None = Field(default=None, alias="trackedDownloadState")
    download_status: str | None = Field(default=None, alias="trackedDownloadStatus")
    quality: dict[str, Any] | None = None

    @property
    def quality_name(self) -> str | None:
        """Human quality name, e.g. ``WEBDL-1080p``."""
        if not self.quality:
            return None
        return (self.quality.get("quality") or {}).get("name")


class HistoryRecord(UpstreamModel):
    """One entry of an *arr history feed."""

    id: int
    date: datetime
    event_type: str = Field(alias="eventType")
    source_title: str = Field(default="", alias="sourceTitle")
    related_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("related_id", "seriesId", "movieId"),
    )

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)


class HealthCheck(UpstreamModel):
    """One entry of an *arr health check list."""

    source: str | None = None
    type: str | None = None
    message: str = ""
    wiki_url: str | None = Field(default=None, alias="wikiUrl")


class CalendarEntry(UpstreamModel):
    """An upcoming episode or movie release, already formatted for display."""

    title: str
    air_date: datetime | None = None
    related_id: int | None = None

    @field_validator("air_date", mode="before")
    @classmethod
    def _parse_air_date(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)


# qBittorrent


class Torrent(UpstreamModel):
    """Torrent as reported by ``/api/v2/torrents/info``."""

    hash: str
    name: str = ""
    progress: float = 0.0


# Jellyfin


class ActivityLogEntry(UpstreamModel):
    """Entry of the Jellyfin server activity log."""

    id: int | str = Field(alias="Id")
    type: str = Field(default="", alias="Type")
    date: datetime = Field(alias="Date")
    name: str = Field(default="", alias="Name")
    overview: str | None = Field(default=None, alias="Overview")

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)


class NowPlayingItem(UpstreamModel):
    """Item currently played in a Jellyfin session."""

    id: str | None = Field(default=None, alias="Id")
    name: str = Field(default="", alias="Name")
    series_name: str | None = Field(default=None, alias="SeriesName")

    @property
    def display_title(self) -> str:
        """``Series - Episode`` for episodes, the item name otherwise."""
        if self.series_name:
            return f"{self.series_name} - {self.name}"
        return self.name


class MediaSession(UpstreamModel):
    """Active Jellyfin playback session."""

    id: str = Field(alias="Id")
    user_name: str | None = Field(default=None, alias="UserName")
    now_playing_item: NowPlayingItem | None = Field(default=None, alias="NowPlayingItem")
