"""Database configuration and session management."""

import itertools
import logging
import os
import threading
import time
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from bugger_engine.core.config import settings

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_id_counter = itertools.count()
_id_lock = threading.Lock()


def _base36(value: int, width: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)).rjust(width, "0")[-width:]


def new_id() -> str:
    """Return a cuid-style identifier.

    Identifiers generated by one process sort lexically in creation order:
    millisecond timestamp, then a process-wide counter, then random suffix.
    """
    with _id_lock:
        counter = next(_id_counter)
    timestamp = _base36(int(time.time() * 1000), 9)
    random_part = _base36(int.from_bytes(os.urandom(8), "big"), 8)
    return f"c{timestamp}{_base36(counter, 6)}{random_part}"


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    """Format a stored (naive UTC) timestamp as ``2026-10-19T09:00:00.000Z``."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds") + "Z"


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async engine for the given URL."""
    return create_async_engine(
        database_url,
        echo=settings.DEBUG,
        future=True,
    )


def create_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Default engine and session factory
engine = create_engine(settings.DATABASE_URL)
async_session_maker = create_session_maker(engine)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


async def init_db(bind: AsyncEngine = None) -> None:
    """Initialize the database, creating tables if needed."""
    from bugger_engine.models import project, bug, job  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created/verified")


async def close_db(bind: AsyncEngine = None) -> None:
    """Close database connections."""
    await (bind or engine).dispose()
    logger.info("Database connections closed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
