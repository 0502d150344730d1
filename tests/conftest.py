"""Pytest fixtures."""

import os

os.environ.setdefault("LONELYCARE_DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("LONELYCARE_CACHE_PATH", "./.test-cache.json")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from lonelycare.core.cache import MemoryCache  # noqa: E402
from lonelycare.core.deps import get_registry  # noqa: E402
from lonelycare.db.base import Base  # noqa: E402
from lonelycare.db.session import get_db  # noqa: E402
from lonelycare.main import app  # noqa: E402
from lonelycare.models import AdminSetting, Friendship, Heartbeat, User, UserProfile  # noqa: F401,E402 - register for create_all
from lonelycare.services.channels import (  # noqa: E402
    AuditLogChannel,
    BannerChannel,
    InteractionPermissions,
    NotificationHistory,
    PendingAlertQueue,
    PushChannel,
    SoundVibrationChannel,
    TakeoverChannel,
)
from lonelycare.services.notifier import MultiChannelNotifier  # noqa: E402
from lonelycare.services.registry import MonitorRegistry  # noqa: E402
from lonelycare.services.store import SqlDocumentStore  # noqa: E402
from tests.fakes import RecordingSender  # noqa: E402

TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session")
def setup_db():
    """Create tables once for test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def registry(setup_db, sender):
    """Registry over the test database with an in-memory cache and recorded WebSocket events."""
    cache = MemoryCache()
    history = NotificationHistory(cache)
    pending = PendingAlertQueue()
    permissions = InteractionPermissions()
    notifier = MultiChannelNotifier(
        [
            PushChannel(None),
            BannerChannel(sender),
            AuditLogChannel(history),
            SoundVibrationChannel(sender, permissions),
            TakeoverChannel(sender),
        ],
        last_resort=pending.enqueue,
    )
    return MonitorRegistry(
        SqlDocumentStore(TestingSessionLocal),
        cache,
        notifier,
        permissions=permissions,
        pending=pending,
        notification_history=history,
    )


@pytest.fixture
def client(setup_db, registry):
    """Test client with overridden DB and registry."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(setup_db):
    """Insert a user and return its id."""

    def _make(name: str, phone: str | None = None) -> int:
        db = TestingSessionLocal()
        try:
            user = User(name=name, phone=phone)
            db.add(user)
            db.commit()
            return user.id
        finally:
            db.close()

    return _make
