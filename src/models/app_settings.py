"""Application settings singleton model."""

from sqlalchemy import Column, Enum, Integer, String

from src.database import Base
from src.models.enums import UpcomingNotifyMode
from src.models.mixins import TimestampMixin

SINGLETON_ID = "singleton"


class AppSettings(Base, TimestampMixin):
    """Runtime-editable settings read by the scheduler and upcoming checker."""

    __tablename__ = "app_settings"

    id = Column(String(20), primary_key=True, default=SINGLETON_ID)
    polling_interval_secs = Column(Integer, default=30, nullable=False)
    upcoming_alert_hours = Column(Integer, default=24, nullable=False)
    upcoming_notify_mode = Column(
        Enum(
            UpcomingNotifyMode,
            name="upcomingnotifymode",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=UpcomingNotifyMode.BEFORE_AIR,
        nullable=False,
    )
    upcoming_notify_before_mins = Column(Integer, default=60, nullable=False)
    upcoming_daily_notify_hour = Column(Integer, default=9, nullable=False)  # 0-23 local
