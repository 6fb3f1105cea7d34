"""Shared test fixtures for the Feedback Signal Detector tests."""

from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from signal_detector.database import Base
from signal_detector.models import cache_entry, feedback  # noqa: F401
from signal_detector.models.feedback import Feedback

NOW = datetime(2026, 10, 19, 12, 0, 0)


@pytest_asyncio.fixture
async def db_engine():
    """In-memory database shared by every session of one test."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a fresh in-memory database per test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def add_feedback(db_session):
    """Insert feedback rows aged relative to NOW; returns the created records."""

    async def _add(category, user_type, count=1, age_days=0.5, content="Something broke", source="GitHub"):
        records = [
            Feedback(
                source=source,
                content=f"{content} #{i}",
                category=category,
                user_type=user_type,
                created_at=NOW - timedelta(days=age_days),
            )
            for i in range(count)
        ]
        db_session.add_all(records)
        await db_session.commit()
        return records

    return _add
