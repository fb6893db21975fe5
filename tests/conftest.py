"""Shared test fixtures for the healthsync test suite."""

import json
from datetime import date, datetime, time, timezone
from typing import Callable, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from healthsync.core.database import Base
# Import all models so their metadata is registered on Base
import healthsync.models.database  # noqa: F401
import healthsync.models.sync_log  # noqa: F401
from healthsync.schemas.backend import User
from healthsync.services.activity_types import READ_TYPES, ActivityType
from healthsync.services.auth import AuthSession
from healthsync.services.backend import BackendClient
from healthsync.services.health_store import LocalHealthStore, QuantitySample
from healthsync.services.storage import LocalStorage
from healthsync.services.sync import ActivitySyncEngine

BACKEND_URL = "http://backend.test"
FIXED_NOW = datetime(2025, 1, 30, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def session_factory():
    """
    In-memory SQLite session factory shared by every service under test.

    StaticPool keeps a single connection so all sessions see the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def async_session(session_factory):
    """A single session on the in-memory database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(session_factory):
    return LocalStorage(session_factory)


@pytest.fixture
def user():
    return User(id="user-1", name="Ada", email="ada@example.com")


@pytest.fixture
def auth_session(storage, user):
    """A signed-in session held in memory."""
    session = AuthSession(storage)
    session.token = "test-token"
    session.user = user
    return session


@pytest_asyncio.fixture
async def health_store(session_factory):
    store = LocalHealthStore(session_factory, "UTC")
    await store.request_permission(READ_TYPES)
    return store


class FakeBackend:
    """Programmable stand-in for the remote backend, served through httpx.MockTransport."""

    def __init__(self):
        self.missing_dates: Optional[list[str]] = []
        self.missing_status = 200
        self.fail_update: Callable[[dict], bool] = lambda payload: False
        self.on_update: Optional[Callable[[dict], None]] = None
        self.update_calls: list[dict] = []
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/api/activities/missing-dates":
            if self.missing_status != 200:
                return httpx.Response(self.missing_status, text="server error")
            return httpx.Response(200, json={"missing_dates": self.missing_dates})

        if path == "/api/activities/update":
            payload = json.loads(request.content)
            self.update_calls.append(payload)
            if self.on_update:
                self.on_update(payload)
            if self.fail_update(payload):
                return httpx.Response(500, text="upsert failed")
            return httpx.Response(200, json={"status": "ok"})

        return httpx.Response(404, json={"error": "not found"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def uploaded_dates(self) -> list[str]:
        """Distinct upload dates in first-seen order."""
        seen = []
        for call in self.update_calls:
            if call["date"] not in seen:
                seen.append(call["date"])
        return seen


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def backend_client(auth_session, fake_backend):
    return BackendClient(BACKEND_URL, auth_session, transport=fake_backend.transport())


@pytest_asyncio.fixture
async def sync_engine(health_store, backend_client, auth_session, storage, session_factory):
    """Authorized engine on a UTC clock fixed at 2025-01-30 12:00, with no inter-day delay."""
    engine = ActivitySyncEngine(
        health_store,
        backend_client,
        auth_session,
        storage,
        session_factory,
        "UTC",
        upload_delay=0,
        now=lambda: FIXED_NOW,
    )
    await engine.authorize()
    yield engine
    await backend_client.close()


async def seed_day(
    store: LocalHealthStore,
    day: date,
    metric_type: ActivityType,
    value: float,
    hour: int = 12,
) -> None:
    """Add one sample for the given day in the metric's canonical unit."""
    start = datetime.combine(day, time(hour), tzinfo=timezone.utc)
    await store.add_samples([
        QuantitySample(metric_type=metric_type, value=value, unit=metric_type.store_unit, start=start)
    ])


@pytest.fixture
def seed(health_store):
    """seed(day, metric_type, value) adds a sample to the test health store."""
    async def _seed(day: date, metric_type: ActivityType, value: float, hour: int = 12) -> None:
        await seed_day(health_store, day, metric_type, value, hour)
    return _seed
