"""
Database Configuration

Backs the database alert lifecycle store. The engine is created on first
use so importing the models (or running with the in-memory store) never
opens a connection.

SECURITY:
- SQLAlchemy echo disabled in production to prevent credential leakage
- Connection string never logged
"""

import logging
import time
from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

logger = logging.getLogger(__name__)

SLOW_QUERY_THRESHOLD_MS = 500

_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


# Slow query logging
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info["query_start_time"] = time.monotonic()


def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    start = conn.info.get("query_start_time")
    if start is None:
        return
    duration_ms = (time.monotonic() - start) * 1000
    if duration_ms >= SLOW_QUERY_THRESHOLD_MS:
        param_count = len(parameters) if parameters else 0
        truncated = statement[:200] + ("..." if len(statement) > 200 else "")
        logger.warning("Slow query (%.0fms, %d params): %s", duration_ms, param_count, truncated)


def create_engine_for(url: str) -> AsyncEngine:
    """Build an async engine with slow query logging attached."""
    options = {"echo": settings.sqlalchemy_echo, "future": True}
    if not url.startswith("sqlite"):
        # Connection pool settings for production stability
        options.update(
            pool_size=20,
            max_overflow=10,
            pool_recycle=3600,
            pool_pre_ping=True,
        )

    engine = create_async_engine(url, **options)
    event.listen(engine.sync_engine, "before_cursor_execute", _before_cursor_execute)
    event.listen(engine.sync_engine, "after_cursor_execute", _after_cursor_execute)
    logger.info("Slow query logging enabled (threshold: %dms)", SLOW_QUERY_THRESHOLD_MS)
    return engine


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_engine_for(settings.DATABASE_URL)
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the process engine."""
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_maker


async def init_db(engine: Optional[AsyncEngine] = None):
    """Initialize database tables."""
    # Register the tables on Base.metadata
    import app.models.customer_success  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None
