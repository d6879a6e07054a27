"""Per-subscription notification preference model."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import TimestampMixin


class NotificationPreference(Base, TimestampMixin):
    """Whether a subscription receives a given event type, with optional filters."""

    __tablename__ = "notification_preferences"
    __table_args__ = (
        UniqueConstraint("subscription_id", "event_type", name="uq_subscription_event_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(
        Integer,
        ForeignKey("push_subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type = Column(String(50), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    # comma separated tag labels; only events that carry tags (ad hoc dispatches) are filtered
    tag_filter = Column(String(255), nullable=True)
    quality_filter = Column(String(255), nullable=True)  # comma separated quality names

    # Relationships
    subscription = relationship("PushSubscription", back_populates="preferences")
