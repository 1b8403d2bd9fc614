"""
RouteDesk Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets a fresh in-memory SQLite database (aiosqlite, one
       shared connection via StaticPool) with the real schema created from
       the ORM models. No Postgres is needed.

Fixture Hierarchy:
    engine         in-memory database with Route/Location tables
    ├── db_session AsyncSession for service-level tests
    └── test_client
                   HTTPX AsyncClient bound to a fresh app whose
                   get_db_session dependency uses the test engine

SAVEPOINT support:
    pysqlite's own transaction handling hides BEGIN from SQLAlchemy, which
    breaks nested transactions (used by the batch updates). The two event
    hooks below hand transaction control back to SQLAlchemy.
"""

import asyncio
import os

# Must be set before routedesk.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Any, AsyncGenerator, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import routedesk.models  # noqa: F401  (registers tables on Base.metadata)
from routedesk.database import Base, get_db_session
from routedesk.main import create_app
from routedesk.models import Location, Route

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(test_engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# API Client Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app(session_factory):
    """A fresh app whose sessions come from the test engine."""
    application = create_app()
    # One shared SQLite connection: requests issued concurrently (the client
    # save fans out with gather) must not interleave their transactions
    lock = asyncio.Lock()

    async def override_get_db_session():
        async with lock:
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
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    Usage:
        async def test_list(test_client):
            response = await test_client.get("/api/routes")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ══════════════════════════════════════════════════════════════════════════
# Data Helpers
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def route_data() -> Dict[str, Any]:
    return {"name": "North Loop", "shift": "AM", "warehouse": "WH-1", "description": "Mon-Sat"}


@pytest_asyncio.fixture
async def saved_route(db_session, route_data) -> Route:
    route = Route(**route_data)
    db_session.add(route)
    await db_session.flush()
    return route


@pytest_asyncio.fixture
async def saved_locations(db_session, saved_route):
    """Three locations on `saved_route`, created in code order 3, 1, 2."""
    rows = [
        Location(route_id=saved_route.id, name="Bakery", code="3", power_mode="Daily", images=[]),
        Location(route_id=saved_route.id, name="Clinic", code="1", power_mode="Alt 1", images=[]),
        Location(route_id=saved_route.id, name="Depot", code="2", power_mode="Weekday", images=None),
    ]
    for row in rows:
        db_session.add(row)
        await db_session.flush()
    return rows
