"""
Database configuration with SQLAlchemy 2.0 async support.
"""

import logging
import ssl
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

from sqlalchemy import DateTime, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from app.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that is always stored and returned as UTC.

    SQLite has no timezone support, so values are written there as naive UTC
    and re-tagged with UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime is not allowed, use an aware UTC instant")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def violated_constraint(exc: IntegrityError) -> str | None:
    """Name of the constraint behind an IntegrityError, when the driver reports it."""
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        name = getattr(candidate, "constraint_name", None)
        if name:
            return name
    return None


def is_constraint_violation(exc: IntegrityError, constraint: str) -> bool:
    return violated_constraint(exc) == constraint or constraint in str(exc.orig)


def _get_connect_args() -> dict:
    """Get connection arguments, including SSL for managed databases."""
    connect_args: dict = {}
    if not settings.is_postgres:
        return connect_args

    db_url = settings.database_url
    local_hosts = ["localhost", "127.0.0.1", "@db:", "@db/", "@postgres:", "@postgres/"]
    if not any(host in db_url for host in local_hosts):
        # Managed databases often use self-signed certs
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = ssl_context
    return connect_args


def _get_engine_kwargs() -> dict:
    kwargs: dict = {
        "echo": settings.debug,
        "connect_args": _get_connect_args(),
        "pool_pre_ping": True,
    }
    if settings.is_postgres:
        kwargs["pool_size"] = settings.database_pool_size
        kwargs["max_overflow"] = settings.database_max_overflow
    return kwargs


# Create async engine
engine = create_async_engine(settings.database_url, **_get_engine_kwargs())

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session.

    The whole request runs in one transaction: commit on success, rollback on
    any exception (domain errors included).
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Initialize database (extensions and tables)."""
    # Import all models to ensure they're registered
    from app import models  # noqa: F401

    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            # Required by the bookings exclusion constraints
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
