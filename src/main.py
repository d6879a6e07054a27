"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api import notifications
from src.api import settings as settings_api
from src.config import get_settings
from src.database import SessionLocal
from src.services.scheduler import scheduler
from src.services.state_store import get_app_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def start_polling() -> None:
    """Start the scheduler with the interval stored in the settings singleton."""
    db = SessionLocal()
    try:
        interval = get_app_settings(db).polling_interval_secs
    finally:
        db.close()
    scheduler.start(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start polling on startup and stop it on shutdown."""
    if settings.polling_enabled:
        try:
            start_polling()
        except Exception as e:
            # The API stays up even if the settings table is unreachable
            logger.warning(f"Could not start polling service: {e}")
    yield
    scheduler.stop()


app = FastAPI(
    title="Helprr Notifications API",
    description="Change detection and push notifications for a self-hosted media stack",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Register routers
app.include_router(notifications.router)
app.include_router(settings_api.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.environment,
        "polling": scheduler.is_running,
    }
