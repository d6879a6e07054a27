"""Enums for model fields."""

from enum import Enum


class ServiceType(str, Enum):
    """Upstream services that can be connected and watched."""

    SONARR = "SONARR"
    RADARR = "RADARR"
    QBITTORRENT = "QBITTORRENT"
    JELLYFIN = "JELLYFIN"


class EventType(str, Enum):
    """Notification event types a subscription can opt in or out of."""

    GRABBED = "grabbed"
    IMPORTED = "imported"
    DOWNLOAD_FAILED = "downloadFailed"
    IMPORT_FAILED = "importFailed"
    UPCOMING_PREMIERE = "upcomingPremiere"
    HEALTH_WARNING = "healthWarning"
    TORRENT_ADDED = "torrentAdded"
    TORRENT_COMPLETED = "torrentCompleted"
    TORRENT_DELETED = "torrentDeleted"
    LIBRARY_ITEM_ADDED = "libraryItemAdded"
    PLAYBACK_STARTED = "playbackStarted"

    @classmethod
    def values(cls) -> list[str]:
        """Return every event type string."""
        return [e.value for e in cls]


class UpcomingNotifyMode(str, Enum):
    """When upcoming releases are announced."""

    BEFORE_AIR = "before_air"
    ONCE_IN_WINDOW = "once_in_window"
    DAILY_DIGEST = "daily_digest"
