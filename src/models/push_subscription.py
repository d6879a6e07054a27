"""Push subscription model for web push notifications."""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import TimestampMixin


class PushSubscription(Base, TimestampMixin):
    """Stores web push notification subscriptions, one per browser endpoint."""

    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    endpoint = Column(String(500), nullable=False, unique=True)
    p256dh_key = Column(String(200), nullable=False)
    auth_key = Column(String(100), nullable=False)
    device_name = Column(String(255), nullable=True)

    # Relationships
    preferences = relationship(
        "NotificationPreference",
        back_populates="subscription",
        cascade="all, delete-orphan",
    )

    def subscription_info(self) -> dict:
        """Subscription payload in the shape pywebpush expects."""
        return {
            "endpoint": self.endpoint,
            "keys": {
                "p256dh": self.p256dh_key,
                "auth": self.auth_key,
            },
        }
