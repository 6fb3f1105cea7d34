"""Analysis cache — key → JSON blob store with TTL.

The cache is best-effort: callers treat any failure as a miss.
"""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from threading import Lock
from typing import Any, Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from signal_detector.models.cache_entry import CacheEntry
from signal_detector.utils.time import as_naive_utc, utc_now


class AnalysisCache(ABC):
    """Abstract key/value cache for JSON payloads."""

    @abstractmethod
    async def get_json(self, key: str) -> Optional[Any]:
        """Return the decoded payload, or None on a miss or expiry."""
        ...

    @abstractmethod
    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...


class NullCache(AnalysisCache):
    """Cache that never stores anything (CACHE_BACKEND=none)."""

    async def get_json(self, key: str) -> Optional[Any]:
        return None

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        return None


class InMemoryCache(AnalysisCache):
    """Process-local TTL cache.

    Values are stored as JSON text so reads return an independent copy,
    exactly as a remote key/value store would.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = Lock()
        self._entries: dict[str, tuple[float, str]] = {}

    async def get_json(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, payload = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
        return json.loads(payload)

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = json.dumps(value)
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, payload)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class DatabaseCache(AnalysisCache):
    """TTL cache persisted in the `cache_entries` table.

    Uses its own short-lived sessions so cache traffic never shares a
    transaction with the analysis queries.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_json(self, key: str) -> Optional[Any]:
        now = as_naive_utc(utc_now())
        async with self._session_factory() as session:
            entry = (
                await session.execute(select(CacheEntry).where(CacheEntry.key == key))
            ).scalar_one_or_none()
        if entry is None or entry.expires_at <= now:
            return None
        return json.loads(entry.payload)

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        expires_at = as_naive_utc(utc_now()) + timedelta(seconds=ttl_seconds)
        async with self._session_factory() as session:
            await session.execute(delete(CacheEntry).where(CacheEntry.key == key))
            session.add(CacheEntry(key=key, payload=json.dumps(value), expires_at=expires_at))
            await session.commit()


def build_cache(backend: str) -> AnalysisCache:
    """Instantiate the cache backend named by CACHE_BACKEND."""
    backend = (backend or "memory").strip().lower()
    if backend == "none":
        return NullCache()
    if backend == "database":
        from signal_detector.database import async_session

        return DatabaseCache(async_session)
    if backend == "memory":
        return InMemoryCache()
    raise ValueError(f"Unknown CACHE_BACKEND '{backend}' (expected memory, database or none)")
