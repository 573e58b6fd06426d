"""Pytest configuration and shared fixtures."""

import asyncio
import uuid
from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import List

import pytest
from unittest.mock import AsyncMock, MagicMock

from quote_routing.config import GeocodingSettings
from quote_routing.schemas.routing import RoutingBranchKey, RoutingStatus


class FakeClock:
    """Monotonic clock whose sleeps only move virtual time forward."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def geocoding_settings() -> GeocodingSettings:
    """Geocoding settings with a fast timeout and no spacing.

    Returns:
        GeocodingSettings: Settings for tests
    """
    return GeocodingSettings(
        enabled=True,
        base_url="https://geocoder.test",
        provider="nominatim",
        contact_email="ops@example.com",
        user_agent="quote-routing-tests",
        country_code="ar",
        country_name="Argentina",
        language="es",
        timeout_seconds=1.0,
        min_interval_seconds=0.0,
    )


@pytest.fixture
def mock_session() -> MagicMock:
    """Create mock async SQLAlchemy session.

    Returns:
        MagicMock: Session with awaitable execute/commit/rollback/flush/get
    """
    session = MagicMock()
    session.execute = AsyncMock(return_value=MagicMock())
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.get = AsyncMock()
    session.get_bind.return_value.dialect.name = "postgresql"
    return session


def make_session_factory(session):
    """Callable usable as ``async with factory() as session``."""

    @asynccontextmanager
    async def factory():
        yield session

    return factory


def make_stored_row(**overrides) -> SimpleNamespace:
    """Lead row with every routing column the reconciler reads."""
    values = {
        "id": uuid.uuid4(),
        "codigo_postal": "1870",
        "routing_branch": RoutingBranchKey.LEJANOS,
        "routing_distance_km": None,
        "routing_postal_code_normalized": None,
        "routing_latitude": None,
        "routing_longitude": None,
        "routing_provider": None,
        "routing_status": RoutingStatus.FALLBACK_INVALID_CP,
        "routing_overridden": False,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def row_factory():
    return make_stored_row


@pytest.fixture
def session_factory_for():
    return make_session_factory
