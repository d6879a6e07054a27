"""Notification-related Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.models.enums import EventType


class NotificationEvent(BaseModel):
    """A typed event handed to the notifier."""

    event_type: EventType
    title: str
    body: str
    metadata: dict[str, Any] | None = None
    url: str | None = None

    def push_payload(self) -> dict[str, Any]:
        """Payload delivered to the service worker."""
        return {
            "title": self.title,
            "body": self.body,
            "tag": self.event_type.value,
            "url": self.url or "/",
        }


class PushKeys(BaseModel):
    """Browser-generated encryption keys of a push subscription."""

    p256dh: str
    auth: str


class PushSubscriptionCreate(BaseModel):
    """Schema for creating a push subscription."""

    endpoint: str
    keys: PushKeys
    device_name: str | None = Field(default=None, alias="deviceName")

    model_config = {"populate_by_name": True}


class PushSubscriptionResponse(BaseModel):
    """Schema for push subscription response."""

    id: int
    endpoint: str
    device_name: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PreferenceUpdate(BaseModel):
    """Schema for toggling one event type on a subscription."""

    subscription_id: int
    event_type: str
    enabled: bool
    tag_filter: str | None = None
    quality_filter: str | None = None


class PreferenceResponse(BaseModel):
    """Schema for a notification preference."""

    id: int
    subscription_id: int
    event_type: str
    enabled: bool
    tag_filter: str | None
    quality_filter: str | None

    model_config = {"from_attributes": True}


class NotificationHistoryResponse(BaseModel):
    """Schema for one notification history row."""

    id: int
    event_type: str
    title: str
    body: str
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="event_metadata")
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationHistoryPage(BaseModel):
    """Paged notification history."""

    page: int
    page_size: int
    total_records: int
    records: list[NotificationHistoryResponse]


class VapidPublicKeyResponse(BaseModel):
    """Schema for VAPID public key response."""

    public_key: str | None


class PushTestResult(BaseModel):
    """Result of sending a test push to every subscription."""

    sent: int
    total: int
