"""Celery tasks for dispatching ad hoc notifications."""

import asyncio
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from src.celery_app import app as celery_app
from src.database import SessionLocal
from src.schemas.notification import NotificationEvent
from src.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=2)
def dispatch_notification(self, event: dict) -> dict:
    """Push an event through the preference-filtered delivery path.

    Lets other subsystems fire a notification without waiting on push
    delivery.

    Args:
        event: NotificationEvent fields (event_type, title, body, metadata, url)

    Returns:
        dict with the number of devices reached
    """
    try:
        notification = NotificationEvent.model_validate(event)
    except ValidationError as e:
        logger.error(f"Rejected malformed notification event: {e}")
        return {"error": "Invalid notification event"}

    db: Session = SessionLocal()
    try:
        sent = asyncio.run(NotificationService().dispatch(db, notification))
        return {"success": True, "event_type": notification.event_type.value, "sent": sent}
    except Exception as e:
        logger.error(f"Error dispatching {notification.event_type.value}: {e}", exc_info=True)
        db.rollback()
        raise self.retry(exc=e, countdown=30) from e
    finally:
        db.close()
