"""Async SQLAlchemy database engine and session management."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from signal_detector.config import settings

_is_postgres = "postgresql" in settings.database_url

_engine_kwargs: dict = {"echo": False}
if _is_postgres:
    _engine_kwargs.update({
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    })

engine = create_async_engine(settings.database_url, **_engine_kwargs)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
logger = logging.getLogger("signaldetector.database")


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create all tables when AUTO_CREATE_SCHEMA is enabled."""
    if not settings.auto_create_schema:
        logger.info("Skipping Base.metadata.create_all (AUTO_CREATE_SCHEMA=false)")
        return

    # Ensure model modules are imported so SQLAlchemy metadata is populated.
    from signal_detector.models import feedback, cache_entry  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncSession:  # type: ignore[misc]
    """Dependency yielding an async DB session."""
    async with async_session() as session:
        yield session
