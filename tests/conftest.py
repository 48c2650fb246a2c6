"""
Shared fixtures for the chat service tests.
"""
import os
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from nerdsphere.main import app
from nerdsphere.core.clock import get_clock
from nerdsphere.core.config import Settings, get_settings
from nerdsphere.core.database import Base, get_db
from nerdsphere.models.message import Message

TEST_DB_PATH = "./test_messages.db"


class FakeClock:
    """Controllable naive-UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def get_test_settings(**overrides) -> Settings:
    """Settings for testing."""
    values = dict(
        database_url=f"sqlite:///{TEST_DB_PATH}",
        log_level="DEBUG",
        log_format="text",
        sweep_interval_seconds=0,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return get_test_settings()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 19, 12, 0, 0))


@pytest.fixture(scope="function")
def test_db(settings, clock):
    """Create a fresh test database for each test and wire it into the app."""
    engine = create_engine(
        settings.database_url,
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_clock] = lambda: clock

    yield TestSessionLocal

    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    app.dependency_overrides.clear()

    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)


@pytest.fixture
def db_session(test_db):
    session = test_db()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(test_db):
    """Create a test client."""
    return TestClient(app)


@pytest.fixture
def add_message(db_session, clock):
    """Insert a message directly, ``age_seconds`` before the fake clock."""

    def _add(content="hello", fingerprint="fp-1", age_seconds=0.0):
        message = Message(
            content=content,
            user_fingerprint=fingerprint,
            created_at=clock.now - timedelta(seconds=age_seconds),
        )
        db_session.add(message)
        db_session.commit()
        db_session.refresh(message)
        return message

    return _add
