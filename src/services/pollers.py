"""Per-service pollers that turn upstream state transitions into notification events.

Each poller loads the last snapshot of its service, fetches the current
upstream state, diffs the two into events, dispatches the events and persists
the new snapshot. Diffing is done by pure functions so that the same
(snapshot, upstream state) pair always yields the same events.
"""

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from src.database import SessionLocal
from src.models.enums import EventType, ServiceType
from src.schemas.notification import NotificationEvent
from src.schemas.upstream import (
    ActivityLogEntry,
    HealthCheck,
    HistoryRecord,
    MediaSession,
    QueueRecord,
    Torrent,
)
from src.services.notification_service import NotificationService, get_notification_service
from src.services.service_connections import (
    ServiceNotConfiguredError,
    get_jellyfin_client,
    get_qbittorrent_client,
    get_radarr_client,
    get_sonarr_client,
)
from src.services.state_store import Snapshot, load_snapshot, save_snapshot

logger = logging.getLogger(__name__)

QUEUE_PAGE_SIZE = 100
HISTORY_PAGE_SIZE = 50
ACTIVITY_LOG_LIMIT = 50
HEALTH_BODY_MAX_LENGTH = 200

IMPORT_FAILED_STATES = {"importFailed"}
DOWNLOAD_FAILED_STATUSES = {"warning", "error"}
IMPORTED_HISTORY_TYPES = {"downloadFolderImported", "episodeFileImported", "movieFileImported"}


@dataclass
class PollResult:
    """Events produced by one diff and the snapshot to persist afterwards."""

    events: list[NotificationEvent] = field(default_factory=list)
    snapshot: Snapshot = field(default_factory=Snapshot)


@dataclass(frozen=True)
class QueueServiceProfile:
    """Per-service wording for queue-style notifications."""

    source: str
    grabbed_title: str
    download_failed_title: str
    import_failed_title: str
    imported_title: str
    health_title: str
    item_url_prefix: str


SONARR_PROFILE = QueueServiceProfile(
    source="sonarr",
    grabbed_title="Download Started",
    download_failed_title="Download Failed",
    import_failed_title="Import Failed",
    imported_title="Episode Imported",
    health_title="Sonarr Health Warning",
    item_url_prefix="/series",
)

RADARR_PROFILE = QueueServiceProfile(
    source="radarr",
    grabbed_title="Movie Download Started",
    download_failed_title="Movie Download Failed",
    import_failed_title="Movie Import Failed",
    imported_title="Movie Imported",
    health_title="Radarr Health Warning",
    item_url_prefix="/movies",
)


def health_digest(health: list[HealthCheck]) -> str:
    """md5 over the canonical JSON of a health list."""
    canonical = json.dumps([h.model_dump() for h in health], sort_keys=True)
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()  # noqa: S324


def classify_queue_item(item: QueueRecord) -> EventType:
    """Map a newly seen queue item to exactly one event type."""
    if item.download_state in IMPORT_FAILED_STATES:
        return EventType.IMPORT_FAILED
    if item.download_status in DOWNLOAD_FAILED_STATUSES:
        return EventType.DOWNLOAD_FAILED
    return EventType.GRABBED


def diff_queue_service(
    snapshot: Snapshot,
    queue: list[QueueRecord],
    history: list[HistoryRecord],
    health: list[HealthCheck],
    profile: QueueServiceProfile,
) -> PollResult:
    """Diff a queue-style service (Sonarr/Radarr) against its last snapshot."""
    events: list[NotificationEvent] = []
    titles = {
        EventType.IMPORT_FAILED: profile.import_failed_title,
        EventType.DOWNLOAD_FAILED: profile.download_failed_title,
        EventType.GRABBED: profile.grabbed_title,
    }

    # New queue items
    previous_ids = {i for i in snapshot.seen_ids if isinstance(i, int | str)}
    current_ids = [item.id for item in queue]
    for item in queue:
        if item.id in previous_ids:
            continue
        event_type = classify_queue_item(item)
        metadata: dict[str, Any] = {"source": profile.source, "id": item.id}
        if item.quality_name:
            metadata["quality"] = item.quality_name
        events.append(
            NotificationEvent(
                event_type=event_type,
                title=titles[event_type],
                body=item.title,
                metadata=metadata,
                url="/activity",
            )
        )

    # Completed imports since the watermark; no watermark means baseline only
    watermark = snapshot.watermark
    if watermark is not None:
        for record in history:
            if record.date <= watermark or record.event_type not in IMPORTED_HISTORY_TYPES:
                continue
            events.append(
                NotificationEvent(
                    event_type=EventType.IMPORTED,
                    title=profile.imported_title,
                    body=record.source_title,
                    metadata={"source": profile.source, "id": record.id},
                    url=(
                        f"{profile.item_url_prefix}/{record.related_id}"
                        if record.related_id
                        else "/activity"
                    ),
                )
            )
    dates = [record.date for record in history]
    if watermark is not None:
        dates.append(watermark)
    new_watermark = max(dates) if dates else None

    # Health changes, never on the first observation
    digest = health_digest(health)
    if snapshot.health_digest and digest != snapshot.health_digest and health:
        events.append(
            NotificationEvent(
                event_type=EventType.HEALTH_WARNING,
                title=profile.health_title,
                body="; ".join(h.message for h in health)[:HEALTH_BODY_MAX_LENGTH],
                metadata={"source": profile.source},
                url="/settings",
            )
        )

    return PollResult(
        events=events,
        snapshot=Snapshot(seen_ids=current_ids, watermark=new_watermark, health_digest=digest),
    )


def _previous_torrents(snapshot: Snapshot) -> dict[str, dict[str, Any]]:
    """Index stored torrents by hash. Unreadable entries count as unseen."""
    previous = {}
    for entry in snapshot.seen_ids:
        if not isinstance(entry, dict) or not isinstance(entry.get("hash"), str):
            logger.warning(f"Discarding malformed torrent snapshot entry: {entry!r}")
            continue
        try:
            progress = float(entry.get("progress") or 0)
        except (TypeError, ValueError):
            logger.warning(f"Discarding torrent snapshot entry with bad progress: {entry!r}")
            continue
        if entry["hash"]:
            previous[entry["hash"]] = {**entry, "progress": progress}
    return previous



def diff_torrents(snapshot: Snapshot, torrents: list[Torrent]) -> PollResult:
    """Diff the torrent list into added, completed and deleted events."""
    events: list[NotificationEvent] = []
    previous = _previous_torrents(snapshot)
    current_hashes = {t.hash for t in torrents}

    for torrent in torrents:
        prev = previous.get(torrent.hash)
        metadata = {"source": "qbittorrent", "hash": torrent.hash}
        if prev is None:
            events.append(
                NotificationEvent(
                    event_type=EventType.TORRENT_ADDED,
                    title="Torrent Added",
                    body=torrent.name,
                    metadata=metadata,
                    url="/torrents",
                )
            )
        elif torrent.progress >= 1 and prev["progress"] < 1:
            events.append(
                NotificationEvent(
                    event_type=EventType.TORRENT_COMPLETED,
                    title="Download Complete",
                    body=torrent.name,
                    metadata=metadata,
                    url="/torrents",
                )
            )

    for torrent_hash, prev in previous.items():
        if torrent_hash not in current_hashes:
            name = prev.get("name")
            events.append(
                NotificationEvent(
                    event_type=EventType.TORRENT_DELETED,
                    title="Torrent Removed",
                    body=name if isinstance(name, str) and name else torrent_hash,
                    metadata={"source": "qbittorrent", "hash": torrent_hash},
                    url="/torrents",
                )
            )

    seen = [{"hash": t.hash, "progress": t.progress, "name": t.name} for t in torrents]
    return PollResult(
        events=events,
        snapshot=Snapshot(
            seen_ids=seen,
            watermark=snapshot.watermark,
            health_digest=snapshot.health_digest,
        ),
    )


def is_library_addition(entry: ActivityLogEntry) -> bool:
    return entry.type == "ItemAdded" or "added to library" in entry.name


def diff_activity_log(snapshot: Snapshot, entries: list[ActivityLogEntry]) -> PollResult:
    """Library additions newer than the watermark. Only the watermark is updated."""
    events: list[NotificationEvent] = []
    watermark = snapshot.watermark
    if watermark is not None:
        for entry in entries:
            if entry.date <= watermark or not is_library_addition(entry):
                continue
            events.append(
                NotificationEvent(
                    event_type=EventType.LIBRARY_ITEM_ADDED,
                    title="Media Added to Jellyfin",
                    body=entry.overview or entry.name,
                    metadata={"source": "jellyfin", "id": entry.id},
                    url="/dashboard",
                )
            )

    dates = [entry.date for entry in entries]
    if watermark is not None:
        dates.append(watermark)
    return PollResult(
        events=events,
        snapshot=Snapshot(
            seen_ids=snapshot.seen_ids,
            watermark=max(dates) if dates else None,
            health_digest=snapshot.health_digest,
        ),
    )


def diff_sessions(snapshot: Snapshot, sessions: list[MediaSession]) -> PollResult:
    """New playback sessions. Only the session id set is updated."""
    events: list[NotificationEvent] = []
    previous_ids = {str(i) for i in snapshot.seen_ids if isinstance(i, int | str)}
    for session in sessions:
        item = session.now_playing_item
        if session.id in previous_ids or item is None:
            continue
        events.append(
            NotificationEvent(
                event_type=EventType.PLAYBACK_STARTED,
                title="Playback Started",
                body=f"{session.user_name or 'Someone'} is watching {item.display_title}",
                metadata={"source": "jellyfin", "sessionId": session.id},
                url="/dashboard",
            )
        )

    return PollResult(
        events=events,
        snapshot=Snapshot(
            seen_ids=[s.id for s in sessions],
            watermark=snapshot.watermark,
            health_digest=snapshot.health_digest,
        ),
    )


class ServicePoller(ABC):
    """Poll one upstream service: fetch, diff, dispatch, persist."""

    service_type: ServiceType
    client_factory: Callable[[Session], Any]

    def __init__(
        self,
        notification_service: NotificationService | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ) -> None:
        self.notification_service = notification_service or get_notification_service()
        self.session_factory = session_factory

    @property
    def name(self) -> str:
        return self.service_type.value.lower()

    def build_client(self, db: Session) -> Any:
        return self.client_factory(db)

    @abstractmethod
    async def collect(self, client: Any, snapshot: Snapshot) -> PollResult:
        """Fetch current upstream state and diff it against the snapshot."""

    async def poll(self) -> int:
        """Run one tick for this service. Returns the number of events emitted.

        An unconfigured service is skipped silently. Any upstream failure
        abandons the tick without persisting, so the next cycle diffs again
        from the last good snapshot. A failed dispatch is logged and the
        snapshot is still saved, so events are never re-sent.
        """
        db = self.session_factory()
        try:
            try:
                client = self.build_client(db)
            except ServiceNotConfiguredError:
                logger.debug(f"{self.name} not configured, skipping")
                return 0

            snapshot = load_snapshot(db, self.service_type)
            try:
                result = await self.collect(client, snapshot)
            except Exception as e:
                db.rollback()
                logger.error(f"Polling {self.name} failed, keeping previous snapshot: {e}")
                return 0

            for event in result.events:
                try:
                    await self.notification_service.dispatch(db, event)
                except Exception as e:
                    db.rollback()
                    logger.error(
                        f"Dispatching {event.event_type.value} from {self.name} failed: {e}"
                    )

            save_snapshot(db, self.service_type, result.snapshot)
            if result.events:
                logger.info(f"Polled {self.name}: {len(result.events)} new events")
            return len(result.events)
        finally:
            db.close()


class QueuePoller(ServicePoller):
    """Poller for queue-style services with history and health feeds."""

    profile: QueueServiceProfile

    async def collect(self, client: Any, snapshot: Snapshot) -> PollResult:
        queue = await client.get_queue(1, QUEUE_PAGE_SIZE)
        history = await client.get_history(1, HISTORY_PAGE_SIZE, "date", "descending")
        health = await client.get_health()
        return diff_queue_service(snapshot, queue, history, health, self.profile)


class SonarrPoller(QueuePoller):
    service_type = ServiceType.SONARR
    client_factory = staticmethod(get_sonarr_client)
    profile = SONARR_PROFILE


class RadarrPoller(QueuePoller):
    service_type = ServiceType.RADARR
    client_factory = staticmethod(get_radarr_client)
    profile = RADARR_PROFILE


class TorrentPoller(ServicePoller):
    """Poller for qBittorrent, tracking per-torrent progress."""

    service_type = ServiceType.QBITTORRENT
    client_factory = staticmethod(get_qbittorrent_client)

    async def collect(self, client: Any, snapshot: Snapshot) -> PollResult:
        torrents = await client.get_torrents()
        return diff_torrents(snapshot, torrents)


class MediaSessionPoller(ServicePoller):
    """Poller for Jellyfin: activity log and playback sessions.

    The two streams share one snapshot row but fail independently: a stream
    whose fetch fails keeps its part of the snapshot untouched.
    """

    service_type = ServiceType.JELLYFIN
    client_factory = staticmethod(get_jellyfin_client)

    async def collect(self, client: Any, snapshot: Snapshot) -> PollResult:
        events: list[NotificationEvent] = []
        watermark = snapshot.watermark
        seen_ids = snapshot.seen_ids

        try:
            min_date = snapshot.watermark.isoformat() if snapshot.watermark else None
            entries = await client.get_activity_log(limit=ACTIVITY_LOG_LIMIT, min_date=min_date)
        except Exception as e:
            logger.error(f"Jellyfin activity log error: {e}")
        else:
            activity = diff_activity_log(snapshot, entries)
            events.extend(activity.events)
            watermark = activity.snapshot.watermark

        try:
            sessions = await client.get_active_sessions()
        except Exception as e:
            logger.error(f"Jellyfin sessions error: {e}")
        else:
            playback = diff_sessions(snapshot, sessions)
            events.extend(playback.events)
            seen_ids = playback.snapshot.seen_ids

        return PollResult(
            events=events,
            snapshot=Snapshot(
                seen_ids=seen_ids, watermark=watermark, health_digest=snapshot.health_digest
            ),
        )


def default_pollers(
    notification_service: NotificationService | None = None,
) -> list[ServicePoller]:
    """One poller per watched service."""
    notification_service = notification_service or get_notification_service()
    return [
        SonarrPoller(notification_service),
        RadarrPoller(notification_service),
        TorrentPoller(notification_service),
        MediaSessionPoller(notification_service),
    ]
