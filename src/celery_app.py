"""Celery application configuration."""

from celery import Celery

from src.config import get_settings

settings = get_settings()

app = Celery(
    "helprr",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["src.tasks.notifications"],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=120,  # push delivery is bounded by the push services
    task_soft_time_limit=90,
)
