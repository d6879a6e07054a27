"""SQLAlchemy models."""

from src.models.app_settings import AppSettings
from src.models.notification_history import NotificationHistory
from src.models.notification_preference import NotificationPreference
from src.models.polling_state import PollingState
from src.models.push_subscription import PushSubscription
from src.models.service_connection import ServiceConnection

__all__ = [
    "AppSettings",
    "NotificationHistory",
    "NotificationPreference",
    "PollingState",
    "PushSubscription",
    "ServiceConnection",
]
