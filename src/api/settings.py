"""Settings API endpoints for the polling engine."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.database import get_db
from src.models import AppSettings
from src.schemas.settings import AppSettingsResponse, AppSettingsUpdate
from src.services.scheduler import scheduler
from src.services.state_store import get_app_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


@router.get("", response_model=AppSettingsResponse)
async def get_settings_singleton(db: Annotated[Session, Depends(get_db)]) -> AppSettings:
    """Get the polling and upcoming-release settings."""
    return get_app_settings(db)


@router.put("", response_model=AppSettingsResponse)
async def update_settings(
    settings_update: AppSettingsUpdate,
    db: Annotated[Session, Depends(get_db)],
) -> AppSettings:
    """Update settings; a new polling interval restarts the running scheduler."""
    settings = get_app_settings(db)
    previous_interval = settings.polling_interval_secs

    # Update fields that are provided
    update_data = settings_update.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in update_data.items():
        setattr(settings, field, value)

    db.commit()
    db.refresh(settings)

    if settings.polling_interval_secs != previous_interval and scheduler.is_running:
        logger.info(f"Polling interval changed to {settings.polling_interval_secs}s")
        scheduler.restart(settings.polling_interval_secs)

    return settings
