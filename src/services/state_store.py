"""Persisted state helpers: polling snapshots, the settings singleton and history lookups."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from src.models import AppSettings, NotificationHistory, PollingState
from src.models.app_settings import SINGLETON_ID
from src.models.enums import ServiceType
from src.models.mixins import as_utc

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """In-memory copy of a PollingState row used for diffing."""

    seen_ids: list[Any] = field(default_factory=list)
    watermark: datetime | None = None
    health_digest: str | None = None


def get_app_settings(db: Session) -> AppSettings:
    """Get the settings singleton, creating it with defaults on first use."""
    settings = db.query(AppSettings).filter(AppSettings.id == SINGLETON_ID).first()
    if not settings:
        settings = AppSettings(id=SINGLETON_ID)
        db.add(settings)
        db.commit()
        db.refresh(settings)
    return settings


def load_snapshot(db: Session, service_type: ServiceType) -> Snapshot:
    """Load the last persisted snapshot for a service.

    Missing rows and malformed fields come back as "no prior observation".
    """
    state = db.query(PollingState).filter(PollingState.service_type == service_type).first()
    if not state:
        return Snapshot()

    seen_ids = state.last_seen_ids
    if not isinstance(seen_ids, list):
        logger.warning(f"Discarding malformed snapshot ids for {service_type.value}")
        seen_ids = []

    watermark = state.last_history_date
    if watermark is not None and not isinstance(watermark, datetime):
        watermark = None

    digest = state.last_health_hash if isinstance(state.last_health_hash, str) else None

    return Snapshot(seen_ids=list(seen_ids), watermark=as_utc(watermark), health_digest=digest)


def save_snapshot(db: Session, service_type: ServiceType, snapshot: Snapshot) -> PollingState:
    """Upsert the snapshot row for a service and commit."""
    state = db.query(PollingState).filter(PollingState.service_type == service_type).first()
    if not state:
        state = PollingState(service_type=service_type)
        db.add(state)

    state.last_seen_ids = list(snapshot.seen_ids)
    state.last_history_date = snapshot.watermark
    state.last_health_hash = snapshot.health_digest
    db.commit()
    return state


def history_exists(
    db: Session,
    event_type: str,
    since: datetime,
    body: str | None = None,
) -> bool:
    """Check whether a notification of this type (and body) was logged since a time."""
    query = db.query(NotificationHistory.id).filter(
        NotificationHistory.event_type == event_type,
        NotificationHistory.created_at >= since,
    )
    if body is not None:
        query = query.filter(NotificationHistory.body == body)
    return query.first() is not None
