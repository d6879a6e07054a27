"""Notification service: preference-filtered web push delivery and history logging."""

import asyncio
import json
import logging
from enum import Enum

from pywebpush import WebPushException, webpush
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from src.config import get_settings
from src.database import SessionLocal
from src.models import NotificationHistory, NotificationPreference, PushSubscription
from src.models.enums import EventType
from src.schemas.notification import NotificationEvent

logger = logging.getLogger(__name__)

# Push services answer these when the endpoint no longer exists
GONE_STATUS_CODES = (404, 410)
MAX_CONCURRENT_DELIVERIES = 10


class DeliveryOutcome(Enum):
    SENT = "sent"
    FAILED = "failed"
    GONE = "gone"


def _split_filter(value: str | None) -> set[str]:
    if not value:
        return set()
    return {part.strip().lower() for part in value.split(",") if part.strip()}


class NotificationService:
    """Service for delivering notification events to push subscriptions."""

    def __init__(self) -> None:
        self.settings = get_settings()
        self._webpush_available = False
        self._init_webpush()

    def _init_webpush(self) -> None:
        """Check if VAPID credentials are configured."""
        if self.settings.push_enabled:
            self._webpush_available = True
            logger.debug("Web push notifications initialized")
        else:
            logger.info("VAPID credentials not configured, push disabled")

    @property
    def vapid_claims(self) -> dict:
        email = self.settings.vapid_email or ""
        subject = email if email.startswith(("mailto:", "https:")) else f"mailto:{email}"
        return {"sub": subject}

    def is_allowed(self, subscription: PushSubscription, event: NotificationEvent) -> bool:
        """Resolve whether a subscription wants this event.

        A missing preference row means the event type is allowed. Tag and
        quality filters only apply when the event carries that metadata.
        """
        pref: NotificationPreference | None = next(
            (p for p in subscription.preferences if p.event_type == event.event_type.value),
            None,
        )
        if pref is None:
            return True
        if not pref.enabled:
            return False

        metadata = event.metadata or {}
        qualities = _split_filter(pref.quality_filter)
        quality = metadata.get("quality")
        if qualities and quality and str(quality).lower() not in qualities:
            return False

        tags = _split_filter(pref.tag_filter)
        event_tags = {str(t).lower() for t in metadata.get("tags") or []}
        if tags and event_tags and not tags & event_tags:
            return False

        return True

    def _deliver(self, subscription_info: dict, payload: str) -> DeliveryOutcome:
        """Send one push message. Runs in a worker thread."""
        endpoint = subscription_info["endpoint"]
        try:
            webpush(
                subscription_info=subscription_info,
                data=payload,
                vapid_private_key=self.settings.vapid_private_key,
                vapid_claims=dict(self.vapid_claims),
                ttl=self.settings.push_ttl_seconds,
            )
            return DeliveryOutcome.SENT
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            if status in GONE_STATUS_CODES:
                return DeliveryOutcome.GONE
            logger.error(f"Push failed for {endpoint[:60]} (status {status}): {e}")
            return DeliveryOutcome.FAILED
        except Exception as e:
            logger.error(f"Push failed for {endpoint[:60]}: {e}")
            return DeliveryOutcome.FAILED

    async def _deliver_all(
        self, subscriptions: list[PushSubscription], payload: dict
    ) -> list[DeliveryOutcome]:
        """Deliver to every subscription concurrently, each in its own failure boundary."""
        data = json.dumps(payload)
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_DELIVERIES)

        async def deliver(subscription_info: dict) -> DeliveryOutcome:
            async with semaphore:
                return await asyncio.to_thread(self._deliver, subscription_info, data)

        return await asyncio.gather(*(deliver(s.subscription_info()) for s in subscriptions))

    def _prune(self, db: Session, gone: list[PushSubscription]) -> None:
        """Delete subscriptions whose endpoints are gone (preferences cascade)."""
        if not gone:
            return
        try:
            for subscription in gone:
                logger.info(f"Removing expired subscription {subscription.id}")
                db.delete(subscription)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to remove expired subscriptions: {e}")

    async def _send(
        self, db: Session, subscriptions: list[PushSubscription], payload: dict
    ) -> int:
        if not subscriptions:
            return 0
        if not self._webpush_available:
            logger.warning("Push notifications not available, skipping delivery")
            return 0

        outcomes = await self._deliver_all(subscriptions, payload)
        gone = [s for s, o in zip(subscriptions, outcomes) if o is DeliveryOutcome.GONE]
        self._prune(db, gone)
        return sum(1 for o in outcomes if o is DeliveryOutcome.SENT)

    def _record_history(self, db: Session, event: NotificationEvent) -> None:
        try:
            db.add(
                NotificationHistory(
                    event_type=event.event_type.value,
                    title=event.title,
                    body=event.body,
                    event_metadata=event.metadata,
                )
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to record notification history for {event.event_type}: {e}")

    async def dispatch(self, db: Session, event: NotificationEvent) -> int:
        """
        Deliver an event to every subscription that allows it.

        Exactly one history row is written per call, whatever the number of
        subscribers or delivery outcomes. Returns the number of successful
        deliveries.
        """
        subscriptions = (
            db.query(PushSubscription).options(selectinload(PushSubscription.preferences)).all()
        )
        targets = [s for s in subscriptions if self.is_allowed(s, event)]

        sent = await self._send(db, targets, event.push_payload())
        self._record_history(db, event)

        logger.info(
            f"Dispatched {event.event_type.value} '{event.title}': "
            f"sent to {sent}/{len(targets)} devices ({len(subscriptions)} subscribed)"
        )
        return sent

    async def send_test(self, db: Session) -> tuple[int, int]:
        """Send a test push to every subscription. Returns (sent, total)."""
        subscriptions = db.query(PushSubscription).all()
        payload = {
            "title": "Helprr Test Notification",
            "body": "Push notifications are working correctly!",
            "tag": "test-notification",
            "url": "/notifications/preferences",
        }
        sent = await self._send(db, subscriptions, payload)
        return sent, len(subscriptions)

    def ensure_preferences(self, db: Session, subscription: PushSubscription) -> None:
        """Seed an enabled preference for every event type the subscription lacks."""
        existing = {p.event_type for p in subscription.preferences}
        for event_type in EventType.values():
            if event_type not in existing:
                subscription.preferences.append(
                    NotificationPreference(event_type=event_type, enabled=True)
                )
        db.commit()


def get_notification_service() -> NotificationService:
    """Get a notification service instance."""
    return NotificationService()


async def dispatch(event: NotificationEvent) -> int:
    """Dispatch an ad hoc event through the preference-filtered delivery path."""
    db = SessionLocal()
    try:
        return await get_notification_service().dispatch(db, event)
    finally:
        db.close()
