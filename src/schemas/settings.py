"""Application settings schemas."""

from pydantic import BaseModel, Field

from src.models.enums import UpcomingNotifyMode


class AppSettingsUpdate(BaseModel):
    """Schema for updating the settings singleton."""

    polling_interval_secs: int | None = Field(default=None, ge=5, le=86400)
    upcoming_alert_hours: int | None = Field(default=None, ge=1, le=24 * 14)
    upcoming_notify_mode: UpcomingNotifyMode | None = None
    upcoming_notify_before_mins: int | None = Field(default=None, ge=0, le=24 * 60)
    upcoming_daily_notify_hour: int | None = Field(default=None, ge=0, le=23)


class AppSettingsResponse(BaseModel):
    """Schema for the settings singleton."""

    polling_interval_secs: int
    upcoming_alert_hours: int
    upcoming_notify_mode: UpcomingNotifyMode
    upcoming_notify_before_mins: int
    upcoming_daily_notify_hour: int

    model_config = {"from_attributes": True}
