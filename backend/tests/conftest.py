"""
Natours Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (database, app, API client, sample data).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── db_engine:        in-memory SQLite engine with every table created
    ├── session_factory:  async sessions bound to db_engine
    ├── app:              fresh FastAPI app using db_engine, generous rate limit
    ├── test_client:      HTTPX AsyncClient talking to `app`
    ├── mock_db_session:  AsyncMock session for pure unit tests
    └── tour_payload:     factory for valid tour request bodies

The SQLite connection gets the math functions PostgreSQL has built in
(radians, sin, cos, asin, sqrt) so the geo queries run unchanged, and
foreign keys are enforced like on PostgreSQL.
"""

import math
import os
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

# Override settings for testing BEFORE any natours imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from natours.database import Base, get_db_session
from natours.main import create_app
from natours.middleware.rate_limit import SlidingWindowLimiter
import natours.models  # noqa: F401


def _nullable(fn):
    def wrapper(value):
        return None if value is None else fn(value)
    return wrapper


def _prepare_sqlite(dbapi_connection, connection_record):
    for name, fn in (
        ("radians", math.radians),
        ("sin", math.sin),
        ("cos", math.cos),
        ("asin", math.asin),
        ("sqrt", math.sqrt),
    ):
        dbapi_connection.create_function(name, 1, _nullable(fn))
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite engine, one per test.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _prepare_sqlite)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_x(mock_db_session):
            mock_db_session.scalar.return_value = None
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.scalar = AsyncMock()
    session.scalars = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Application
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app(session_factory):
    """Fresh app whose get_db_session dependency uses the test engine."""
    application = create_app(rate_limiter=SlidingWindowLimiter(10_000, 3600))

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = override_get_db_session
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ══════════════════════════════════════════════════════════════════════════
# Sample data
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def tour_payload():
    """
    Factory for valid tour request bodies.

    Usage:
        body = tour_payload(name="The Sea Explorer", price=497)
    """

    def make(**overrides: Any) -> Dict[str, Any]:
        body = {
            "name": "The Forest Hiker",
            "duration": 5,
            "maxGroupSize": 25,
            "difficulty": "easy",
            "price": 397,
            "summary": "Breathtaking hike through the Canadian Banff National Park",
            "imageCover": "tour-1-cover.jpg",
            "startDates": ["2021-04-25T09:00:00Z", "2021-07-20T09:00:00Z"],
            "startLocation": {
                "type": "Point",
                "coordinates": [-115.570154, 51.178456],
                "address": "224 Banff Ave, Banff, AB, Canada",
                "description": "Banff, CAN",
            },
        }
        body.update(overrides)
        return body

    return make


async def create_tour(client: AsyncClient, body: Dict[str, Any]) -> Dict[str, Any]:
    response = await client.post("/api/v1/tours", json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]["data"]


async def create_user(client: AsyncClient, **overrides: Any) -> Dict[str, Any]:
    body = {"name": "Laura Wilson", "email": "laura@example.io"}
    body.update(overrides)
    response = await client.post("/api/v1/users", json=body)
    assert response.status_code == 201, response.text
    return response.json()["data"]["data"]
