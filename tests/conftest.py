import os

# Settings are read once at import time
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["BROADCAST_BACKEND"] = "memory"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inventory_sync.main import app
from inventory_sync.database import Base, get_db
from inventory_sync.broadcast.hub import BroadcastHub
from inventory_sync.schemas.events import TOPICS
from inventory_sync.services.media_store import get_media_store
from tests.fakes import FakeMediaStore, RecordingBroadcaster


# Create test database (SQLite in-memory for testing)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Override the dependency
app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
def media_store():
    """Fake media store shared by the app and the test."""
    store = FakeMediaStore()
    app.dependency_overrides[get_media_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_media_store, None)


@pytest.fixture(scope="function")
def client(media_store):
    """Create test client with fresh database for each test."""
    # Create tables
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    # Drop tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create database session for direct database access in tests."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def broadcaster():
    """Broadcaster that records what it publishes."""
    return RecordingBroadcaster(BroadcastHub(TOPICS))


@pytest.fixture(scope="function")
def image():
    return ("widget.png", b"\x89PNG fake image bytes")
