"""
Centralized Test Configuration.
"""

import asyncio
from typing import Callable, List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from climaroute.app.main import app
from climaroute.app.db.session import get_db, Base
from climaroute.app.core.config import Settings
from climaroute.app.core.jwt import create_access_token
from climaroute.app.core.reliability import CircuitBreaker
from climaroute.app.schemas.geo import GeoPoint
from climaroute.app.schemas.route import RawPath, RoadGeometry
from climaroute.app.schemas.weather import WeatherSnapshot
from climaroute.app.services.engine import Engine, get_engine
from climaroute.app.services.notification_service import RecordingNotificationSink
from climaroute.app.services.providers import (
    PathCandidateSource, RoadGeometryProvider, WeatherSource
)

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

DRIVER_EMAIL = "driver.a@fleet.io"
OTHER_DRIVER_EMAIL = "driver.b@fleet.io"
ADMIN_EMAIL = "ops@fleet.io"

KNOWN_LOCATIONS = {
    "Warehouse-1": [40.70, -74.00],
    "Depot-9": [40.80, -73.90],
    "A": [51.50, -0.12],
    "B": [51.45, -0.97],
}


# --- Fake collaborators ---

class FakeGeometryProvider(RoadGeometryProvider):
    """Road geometry provider with scripted latency and failures."""

    def __init__(self, delay: float = 0.0, error: Optional[Exception] = None,
                 geometry: Optional[List[GeoPoint]] = None):
        self.delay = delay
        self.error = error
        self.geometry = geometry
        self.calls = 0

    async def route(self, origin: GeoPoint, destination: GeoPoint) -> RoadGeometry:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        geometry = self.geometry if self.geometry is not None else [
            origin,
            GeoPoint(lat=(origin.lat + destination.lat) / 2 + 0.002, lon=(origin.lon + destination.lon) / 2),
            destination,
        ]
        return RoadGeometry(geometry=geometry, distance=15000.0, duration=1260.0)


class FakeWeatherSource(WeatherSource):
    """Weather by rule: a callable from point to snapshot, or one fixed snapshot."""

    def __init__(self, default: Optional[WeatherSnapshot] = None,
                 rule: Optional[Callable[[GeoPoint], WeatherSnapshot]] = None):
        self.default = default or WeatherSnapshot()
        self.rule = rule
        self.error: Optional[Exception] = None
        self.delay = 0.0
        self.calls = 0

    async def current(self, point: GeoPoint) -> WeatherSnapshot:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if self.rule:
            return self.rule(point)
        return self.default


class FakePathSource(PathCandidateSource):
    def __init__(self, paths: Optional[List[RawPath]] = None, error: Optional[Exception] = None):
        self.paths = paths or []
        self.error = error
        self.calls = 0

    async def find_paths(self, origin: GeoPoint, destination: GeoPoint) -> List[RawPath]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.paths)


def token_for(email: str, role: str = "user") -> str:
    return create_access_token(email, role)


def auth_headers(email: str = DRIVER_EMAIL, role: str = "user") -> dict:
    return {"Authorization": f"Bearer {token_for(email, role)}"}


# --- Fixtures ---

@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Route every request to the in-memory database."""

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def test_settings():
    return Settings(
        known_locations=KNOWN_LOCATIONS,
        geometry_timeout_seconds=0.2,
        weather_timeout_seconds=0.5,
        idle_threshold_seconds=600,
        movement_window_seconds=1800,
    )


@pytest.fixture
def sink():
    return RecordingNotificationSink()


@pytest.fixture
def geometry_provider():
    return FakeGeometryProvider()


@pytest.fixture
def weather_source():
    return FakeWeatherSource()


@pytest.fixture
def orchestration(test_settings, sink, geometry_provider, weather_source):
    """Engine wired to fakes only; no network access."""
    return Engine(
        config=test_settings,
        geometry_provider=geometry_provider,
        weather_source=weather_source,
        sink=sink,
        circuit_breaker=CircuitBreaker(failure_threshold=3, reset_timeout=30, name="test-geometry"),
    )


@pytest.fixture
def trip_manager(orchestration):
    return orchestration.trip_manager


@pytest.fixture
def sos_monitor(orchestration):
    return orchestration.sos_monitor


@pytest.fixture
async def client(orchestration):
    """Async client for testing."""
    app.dependency_overrides[get_engine] = lambda: orchestration
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_engine, None)


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session
