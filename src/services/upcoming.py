"""Upcoming-release checker: announces episodes and movies about to be released."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from src.config import get_settings
from src.database import SessionLocal
from src.models import AppSettings
from src.models.enums import EventType, UpcomingNotifyMode
from src.schemas.notification import NotificationEvent
from src.schemas.upstream import CalendarEntry
from src.services.notification_service import NotificationService, get_notification_service
from src.services.service_connections import (
    ServiceNotConfiguredError,
    get_radarr_client,
    get_sonarr_client,
)
from src.services.state_store import get_app_settings, history_exists

logger = logging.getLogger(__name__)

DEDUP_WINDOW = timedelta(hours=24)
DIGEST_BODY_MAX_LENGTH = 500


@dataclass(frozen=True)
class CalendarSource:
    """A service whose calendar feeds upcoming-release notifications."""

    name: str
    client_factory: Callable[[Session], Any]
    title: str
    url_prefix: str


CALENDAR_SOURCES = (
    CalendarSource("sonarr", get_sonarr_client, "Upcoming Episode", "/series"),
    CalendarSource("radarr", get_radarr_client, "Upcoming Movie", "/movies"),
)


def minutes_until(air_date: datetime, now: datetime) -> float:
    return (air_date - now).total_seconds() / 60


def dedup_lookback(mode: UpcomingNotifyMode, alert_hours: int) -> timedelta:
    """How far back an identical announcement suppresses a new one.

    ``once_in_window`` looks back over the whole alert window so an item is
    announced once for as long as it stays inside it.
    """
    if mode is UpcomingNotifyMode.ONCE_IN_WINDOW:
        return max(DEDUP_WINDOW, timedelta(hours=alert_hours))
    return DEDUP_WINDOW


def in_notify_range(
    entry: CalendarEntry,
    mode: UpcomingNotifyMode,
    now: datetime,
    window_end: datetime,
    notify_before_mins: int,
) -> bool:
    """Whether a calendar entry should be announced at ``now`` under ``mode``."""
    if entry.air_date is None:
        # Cannot time a before-air alert without an air date
        return mode is not UpcomingNotifyMode.BEFORE_AIR
    if mode is UpcomingNotifyMode.BEFORE_AIR:
        return 0 <= minutes_until(entry.air_date, now) <= notify_before_mins
    return now <= entry.air_date <= window_end


class UpcomingReleaseChecker:
    """Compute time-windowed upcoming-release events from *arr calendars."""

    name = "upcoming"

    def __init__(
        self,
        notification_service: NotificationService | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
        sources: tuple[CalendarSource, ...] = CALENDAR_SOURCES,
    ) -> None:
        self.notification_service = notification_service or get_notification_service()
        self.session_factory = session_factory
        self.sources = sources
        self.timezone = ZoneInfo(get_settings().timezone)

    def digest_due(self, db: Session, settings: AppSettings, now: datetime) -> bool:
        """True during the configured local hour until today's digest is sent."""
        local_now = now.astimezone(self.timezone)
        if local_now.hour != settings.upcoming_daily_notify_hour:
            return False
        midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        return not history_exists(db, EventType.UPCOMING_PREMIERE.value, midnight.astimezone(UTC))

    async def _fetch(
        self, db: Session, source: CalendarSource, start: datetime, end: datetime
    ) -> list[CalendarEntry]:
        try:
            client = source.client_factory(db)
        except ServiceNotConfiguredError:
            return []
        try:
            return await client.get_calendar(start.isoformat(), end.isoformat())
        except Exception as e:
            logger.error(f"Fetching {source.name} calendar failed: {e}")
            return []

    async def _announce(
        self, db: Session, event: NotificationEvent, lookback: timedelta, now: datetime
    ) -> bool:
        if history_exists(db, EventType.UPCOMING_PREMIERE.value, now - lookback, body=event.body):
            return False
        await self.notification_service.dispatch(db, event)
        return True

    async def check(self, now: datetime | None = None) -> int:
        """Run one check. Returns the number of upcomingPremiere events emitted."""
        now = now or datetime.now(UTC)
        db = self.session_factory()
        try:
            settings = get_app_settings(db)
            mode = UpcomingNotifyMode(settings.upcoming_notify_mode)

            # Gate before touching any upstream calendar
            if mode is UpcomingNotifyMode.DAILY_DIGEST and not self.digest_due(db, settings, now):
                return 0

            window_end = now + timedelta(hours=settings.upcoming_alert_hours)
            lookback = dedup_lookback(mode, settings.upcoming_alert_hours)

            candidates: list[NotificationEvent] = []
            for source in self.sources:
                for entry in await self._fetch(db, source, now, window_end):
                    if not in_notify_range(
                        entry, mode, now, window_end, settings.upcoming_notify_before_mins
                    ):
                        continue
                    candidates.append(
                        NotificationEvent(
                            event_type=EventType.UPCOMING_PREMIERE,
                            title=source.title,
                            body=entry.title,
                            metadata={"source": source.name, "id": entry.related_id},
                            url=(
                                f"{source.url_prefix}/{entry.related_id}"
                                if entry.related_id
                                else "/calendar"
                            ),
                        )
                    )

            if mode is UpcomingNotifyMode.DAILY_DIGEST:
                if not candidates:
                    return 0
                digest = NotificationEvent(
                    event_type=EventType.UPCOMING_PREMIERE,
                    title=f"{len(candidates)} Upcoming Releases",
                    body="; ".join(c.body for c in candidates)[:DIGEST_BODY_MAX_LENGTH],
                    metadata={"items": [c.metadata for c in candidates]},
                    url="/calendar",
                )
                return int(await self._announce(db, digest, lookback, now))

            emitted = 0
            for event in candidates:
                if await self._announce(db, event, lookback, now):
                    emitted += 1
            return emitted
        finally:
            db.close()
