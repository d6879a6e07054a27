"""Pydantic schemas for API requests and responses."""

from src.schemas.notification import (
    NotificationEvent,
    NotificationHistoryPage,
    NotificationHistoryResponse,
    PreferenceResponse,
    PreferenceUpdate,
    PushSubscriptionCreate,
    PushSubscriptionResponse,
)
from src.schemas.settings import AppSettingsResponse, AppSettingsUpdate

__all__ = [
    "NotificationEvent",
    "PushSubscriptionCreate",
    "PushSubscriptionResponse",
    "PreferenceUpdate",
    "PreferenceResponse",
    "NotificationHistoryResponse",
    "NotificationHistoryPage",
    "AppSettingsResponse",
    "AppSettingsUpdate",
]
