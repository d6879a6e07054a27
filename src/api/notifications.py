"""Notification API endpoints for push subscriptions, preferences and history."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from src.config import get_settings
from src.database import get_db
from src.models import NotificationHistory, NotificationPreference, PushSubscription
from src.models.enums import EventType
from src.schemas.notification import (
    NotificationHistoryPage,
    NotificationHistoryResponse,
    PreferenceResponse,
    PreferenceUpdate,
    PushSubscriptionCreate,
    PushSubscriptionResponse,
    PushTestResult,
    VapidPublicKeyResponse,
)
from src.services.notification_service import get_notification_service

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


def _get_subscription(db: Session, subscription_id: int) -> PushSubscription:
    subscription = db.query(PushSubscription).filter(PushSubscription.id == subscription_id).first()
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription


def _get_history_row(db: Session, notification_id: int) -> NotificationHistory:
    notification = (
        db.query(NotificationHistory).filter(NotificationHistory.id == notification_id).first()
    )
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.get("/vapid-public-key", response_model=VapidPublicKeyResponse)
async def get_vapid_public_key() -> VapidPublicKeyResponse:
    """Get the VAPID public key for push notification subscription."""
    settings = get_settings()
    return VapidPublicKeyResponse(public_key=settings.vapid_public_key)


@router.post("/subscribe", response_model=PushSubscriptionResponse)
async def subscribe_push(
    subscription: PushSubscriptionCreate,
    db: Annotated[Session, Depends(get_db)],
) -> PushSubscription:
    """Subscribe a browser endpoint, seeding an enabled preference per event type."""
    existing = (
        db.query(PushSubscription)
        .filter(PushSubscription.endpoint == subscription.endpoint)
        .first()
    )

    if existing:
        # Update keys if changed
        existing.p256dh_key = subscription.keys.p256dh
        existing.auth_key = subscription.keys.auth
        existing.device_name = subscription.device_name
        push_sub = existing
    else:
        push_sub = PushSubscription(
            endpoint=subscription.endpoint,
            p256dh_key=subscription.keys.p256dh,
            auth_key=subscription.keys.auth,
            device_name=subscription.device_name,
        )
        db.add(push_sub)

    db.flush()
    get_notification_service().ensure_preferences(db, push_sub)
    db.refresh(push_sub)
    return push_sub


@router.delete("/subscribe")
async def unsubscribe_push(
    endpoint: str,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Unsubscribe from push notifications."""
    subscription = db.query(PushSubscription).filter(PushSubscription.endpoint == endpoint).first()

    if subscription:
        db.delete(subscription)
        db.commit()
        return {"message": "Unsubscribed successfully"}

    return {"message": "Subscription not found"}


@router.post("/subscribe/test", response_model=PushTestResult)
async def send_test_push(db: Annotated[Session, Depends(get_db)]) -> PushTestResult:
    """Send a test notification to every subscribed device."""
    service = get_notification_service()
    sent, total = await service.send_test(db)

    if total == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No push subscriptions found. Please enable notifications first.",
        )
    if sent == 0:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send to any subscription. Check VAPID configuration.",
        )
    return PushTestResult(sent=sent, total=total)


@router.get("/preferences", response_model=list[PreferenceResponse])
async def get_preferences(
    db: Annotated[Session, Depends(get_db)],
    subscription_id: int | None = None,
    endpoint: str | None = None,
) -> list[NotificationPreference]:
    """Get the preferences of one subscription, by id or endpoint."""
    if subscription_id is None and not endpoint:
        raise HTTPException(status_code=400, detail="subscription_id or endpoint is required")

    if subscription_id is not None:
        subscription = _get_subscription(db, subscription_id)
    else:
        subscription = (
            db.query(PushSubscription).filter(PushSubscription.endpoint == endpoint).first()
        )
        if not subscription:
            return []

    get_notification_service().ensure_preferences(db, subscription)
    return (
        db.query(NotificationPreference)
        .filter(NotificationPreference.subscription_id == subscription.id)
        .order_by(NotificationPreference.event_type)
        .all()
    )


@router.post("/preferences", response_model=PreferenceResponse)
async def update_preference(
    update: PreferenceUpdate,
    db: Annotated[Session, Depends(get_db)],
) -> NotificationPreference:
    """Enable or disable one event type for a subscription."""
    if update.event_type not in EventType.values():
        raise HTTPException(status_code=400, detail="Invalid event type")

    subscription = _get_subscription(db, update.subscription_id)
    get_notification_service().ensure_preferences(db, subscription)

    preference = (
        db.query(NotificationPreference)
        .filter(
            NotificationPreference.subscription_id == subscription.id,
            NotificationPreference.event_type == update.event_type,
        )
        .one()
    )
    preference.enabled = update.enabled
    preference.tag_filter = update.tag_filter
    preference.quality_filter = update.quality_filter
    db.commit()
    db.refresh(preference)
    return preference


@router.get("", response_model=NotificationHistoryPage)
async def list_notifications(
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=200)] = 50,
    unread_only: bool = False,
) -> NotificationHistoryPage:
    """Get the notification history, newest first."""
    query = db.query(NotificationHistory)
    if unread_only:
        query = query.filter(NotificationHistory.read.is_(False))

    total = query.count()
    records = (
        query.order_by(NotificationHistory.created_at.desc(), NotificationHistory.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return NotificationHistoryPage(
        page=page,
        page_size=page_size,
        total_records=total,
        records=[NotificationHistoryResponse.model_validate(r) for r in records],
    )


@router.post("/read-all")
async def mark_all_read(db: Annotated[Session, Depends(get_db)]) -> dict:
    """Mark every notification as read."""
    db.query(NotificationHistory).filter(NotificationHistory.read.is_(False)).update(
        {NotificationHistory.read: True}, synchronize_session=False
    )
    db.commit()
    return {"success": True}


@router.put("/{notification_id}", response_model=NotificationHistoryResponse)
async def mark_read(
    notification_id: int,
    db: Annotated[Session, Depends(get_db)],
) -> NotificationHistoryResponse:
    """Mark one notification as read."""
    notification = _get_history_row(db, notification_id)
    notification.read = True
    db.commit()
    db.refresh(notification)
    return NotificationHistoryResponse.model_validate(notification)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Delete one notification from the history."""
    notification = _get_history_row(db, notification_id)
    db.delete(notification)
    db.commit()
    return {"success": True}
