"""
RouteDesk Backend — Database Session Management
=================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   Creates an async engine with connection pooling, provides a session
       dependency that auto-commits on success and auto-rolls-back on error.
Who:   Used by route handlers via FastAPI's dependency injection system.
When:  Engine is created at module import; sessions are created per-request.

Connection Failure Policy:
    The engine is built once at import. If the URL is missing or cannot be
    parsed, the failure is logged and `engine` stays None. Every request that
    needs a session then receives DatabaseNotConnectedError (500) until the
    process restarts with a valid configuration. The process itself never
    crashes on a bad URL, so /health keeps answering.

URL Normalization:
    Managed Postgres providers hand out URLs such as
        postgresql://user:pw@host/db?sslmode=require&channel_binding=require
    asyncpg needs the `postgresql+asyncpg` driver name and understands `ssl`,
    not `sslmode`; `channel_binding` is negotiated by asyncpg itself.
"""

import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from routedesk.config import settings
from routedesk.exceptions import DatabaseNotConnectedError

logger = logging.getLogger(__name__)

# Query parameters that libpq understands but asyncpg rejects as connect kwargs
_LIBPQ_ONLY_PARAMS = ("sslmode", "channel_binding")


def normalize_database_url(raw_url: str) -> URL:
    """
    Convert a libpq-style Postgres URL into one the asyncpg dialect accepts.

    Non-Postgres URLs (e.g. sqlite+aiosqlite in tests) are returned untouched.
    """
    url = make_url(raw_url.strip())
    if url.drivername in ("postgres", "postgresql", "postgresql+psycopg2"):
        url = url.set(drivername="postgresql+asyncpg")
    if url.drivername != "postgresql+asyncpg":
        return url

    sslmode = url.query.get("sslmode")
    url = url.difference_update_query(_LIBPQ_ONLY_PARAMS)
    if sslmode and "ssl" not in url.query:
        url = url.update_query_dict({"ssl": sslmode})
    return url


def build_engine(raw_url: str) -> AsyncEngine:
    """Create the async engine; pool sizing applies to server databases only."""
    url = normalize_database_url(raw_url)
    kwargs = {
        "pool_pre_ping": settings.db_pool_pre_ping,
        "echo": settings.log_level == "DEBUG",
    }
    if not url.drivername.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=1800,
        )
    return create_async_engine(url, **kwargs)


def _init_engine() -> Optional[AsyncEngine]:
    if not settings.database_configured:
        logger.error("DATABASE_URL is not set; database-backed requests will fail")
        return None
    try:
        return build_engine(settings.database_url)
    except Exception as e:
        # Surface the problem on every request rather than crashing the import
        logger.error("Failed to initialize database engine: %s", str(e))
        return None


# ── Engine & Session Factory ──────────────────────────────────────────────
engine: Optional[AsyncEngine] = _init_engine()

# expire_on_commit=False: attributes stay readable after the request commits
async_session_factory: Optional[async_sessionmaker] = (
    async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    if engine is not None
    else None
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Refuses with DatabaseNotConnectedError if the engine never came up
        2. Yields a fresh session to the route handler
        3. On success: commits the transaction
        4. On error: rolls back, then re-raises for the global handlers
        5. Always: closes the session (returns connection to pool)
    """
    if async_session_factory is None:
        raise DatabaseNotConnectedError()

    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Gracefully closes all connections in the pool at shutdown."""
    if engine is not None:
        await engine.dispose()
