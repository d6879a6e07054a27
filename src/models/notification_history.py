"""Notification history model."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from src.database import Base
from src.models.mixins import utcnow


class NotificationHistory(Base):
    """Append-only log of every dispatched notification event."""

    __tablename__ = "notification_history"

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSON().with_variant(JSONB, "postgresql"), nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
