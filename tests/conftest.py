"""Pytest configuration and fixtures."""

import os

# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace("/helprr", "/helprr_test")
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

# Must be set before src.config builds its cached settings
os.environ["DATABASE_URL"] = SQLALCHEMY_DATABASE_URL
os.environ["POLLING_ENABLED"] = "false"

from unittest.mock import AsyncMock, MagicMock, patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from src.config import Settings  # noqa: E402
from src.database import Base, get_db  # noqa: E402
from src.main import app  # noqa: E402
from src.models import PushSubscription  # noqa: E402
from src.services.notification_service import NotificationService  # noqa: E402

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeArrClient:
    """Stand-in for SonarrClient/RadarrClient with canned responses."""

    def __init__(self, queue=None, history=None, health=None, calendar=None, fail=False):
        self.queue = queue or []
        self.history = history or []
        self.health = health or []
        self.calendar = calendar or []
        self.fail = fail
        self.calendar_calls = 0

    async def _result(self, value):
        if self.fail:
            import httpx

            raise httpx.ConnectError("connection refused")
        return value

    async def get_queue(self, page=1, page_size=20):
        return await self._result(self.queue)

    async def get_history(self, page=1, page_size=20, sort_key="date", sort_direction="descending"):
        return await self._result(self.history)

    async def get_health(self):
        return await self._result(self.health)

    async def get_calendar(self, start, end):
        self.calendar_calls += 1
        return await self._result(self.calendar)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        # For PostgreSQL, create the test database
        from sqlalchemy_utils import create_database, database_exists

        # Create test database if it doesn't exist
        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def fake_arr():
    """Factory for fake Sonarr/Radarr clients."""
    return FakeArrClient


@pytest.fixture
def session_factory():
    """Session factory handed to pollers and the checker."""
    return TestingSessionLocal


@pytest.fixture
def push_settings():
    """Settings with complete VAPID credentials."""
    return Settings(
        database_url=SQLALCHEMY_DATABASE_URL,
        vapid_public_key="test-public-key",
        vapid_private_key="test-private-key",
        vapid_email="ops@example.com",
    )


@pytest.fixture
def notifier(push_settings):
    """Notification service with push enabled."""
    with patch("src.services.notification_service.get_settings", return_value=push_settings):
        yield NotificationService()


@pytest.fixture
def mock_webpush():
    """Patch pywebpush.webpush as used by the notification service."""
    with patch("src.services.notification_service.webpush") as mocked:
        yield mocked


@pytest.fixture
def spy_notifier():
    """Notifier double that records dispatched events."""
    spy = MagicMock(spec=NotificationService)
    spy.dispatch = AsyncMock(return_value=0)
    return spy


@pytest.fixture
def make_subscription(db):
    """Create a push subscription, optionally with preferences."""

    def _make(endpoint: str, preferences: dict[str, bool] | None = None) -> PushSubscription:
        from src.models import NotificationPreference

        subscription = PushSubscription(
            endpoint=endpoint, p256dh_key="p256dh", auth_key="auth", device_name="Test device"
        )
        for event_type, enabled in (preferences or {}).items():
            subscription.preferences.append(
                NotificationPreference(event_type=event_type, enabled=enabled)
            )
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        return subscription

    return _make
