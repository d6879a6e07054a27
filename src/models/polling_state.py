"""Polling state model holding the last observed snapshot of each service."""

from sqlalchemy import JSON, Column, DateTime, Enum, Integer, String
from sqlalchemy.dialects.postgresql import JSONB

from src.database import Base
from src.models.enums import ServiceType
from src.models.mixins import utcnow


class PollingState(Base):
    """Last persisted view of a watched service, used only for diffing.

    ``last_seen_ids`` is a list of queue/session ids, or for qBittorrent a list
    of ``{"hash", "progress", "name"}`` dicts.
    """

    __tablename__ = "polling_states"

    id = Column(Integer, primary_key=True, index=True)
    service_type = Column(
        Enum(
            ServiceType,
            name="servicetype",
            values_callable=lambda x: [e.value for e in x],
        ),
        unique=True,
        nullable=False,
    )
    last_seen_ids = Column(JSON().with_variant(JSONB, "postgresql"), default=list, nullable=False)
    last_history_date = Column(DateTime(timezone=True), nullable=True)
    last_health_hash = Column(String(64), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
