"""
ScentMatch Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Every test gets its own in-memory SQLite database, so auth and
       catalog behavior is exercised against real SQL without PostgreSQL.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    database ──┬── db_session:  AsyncSession for service-level tests
               └── test_client: HTTPX AsyncClient around create_app(database=...)
    notifier:    RecordingNotifier capturing (destination, code) pairs
    clock:       FrozenClock for expiry tests
"""

import os
from datetime import datetime, timedelta, timezone
from typing import List, Tuple

# Override settings for testing BEFORE any scentmatch imports
# Why: `settings` is built at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "development"
os.environ["EXPOSE_OTP_CODE"] = "true"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from scentmatch.database import Database
from scentmatch.services.notifier import Notifier



class RecordingNotifier(Notifier):
    """Keeps every delivered code in memory instead of sending it."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    async def send(self, destination: str, code: str) -> None:
        self.sent.append((destination, code))


class FailingNotifier(Notifier):
    """Delivery backend that is down."""

    async def send(self, destination: str, code: str) -> None:
        raise RuntimeError("SMS gateway unavailable")


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest_asyncio.fixture
async def database():
    """
    Fresh in-memory database with every table created.

    StaticPool keeps the single in-memory connection alive across sessions;
    otherwise each new connection would see an empty database.
    """
    db = Database(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    return FailingNotifier()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest_asyncio.fixture
async def test_client(database, notifier):
    """
    HTTPX AsyncClient wired to an app built around the test database.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from scentmatch.main import create_app

    app = create_app(database=database, notifier=notifier)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
