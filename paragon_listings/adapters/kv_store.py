# paragon_listings/adapters/kv_store.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db import session_scope
from ..models import KvEntry


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_aware_utc(dt: datetime) -> datetime:
    """
    SQLite hands back naive datetimes even though we store UTC.
    If naive, assume UTC so comparisons don't explode.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str, ttl_s: float | None = None) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore:
    """Process-local store. Good for tests and single-worker dev."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, datetime | None]] = {}

    async def get(self, key: str) -> str | None:
        hit = self._data.get(key)
        if hit is None:
            return None
        value, expires_at = hit
        if expires_at is not None and expires_at <= _utcnow():
            self._data.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_s: float | None = None) -> None:
        self._purge_expired()
        expires_at = _utcnow() + timedelta(seconds=float(ttl_s)) if ttl_s else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def _purge_expired(self) -> None:
        now = _utcnow()
        for key in [k for k, (_, exp) in self._data.items() if exp is not None and exp <= now]:
            del self._data[key]

    def __len__(self) -> int:
        return len(self._data)


class SqlKeyValueStore:
    """Durable store on the kv_entries table; survives process restarts."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = session_factory

    async def get(self, key: str) -> str | None:
        async with session_scope(self._sessions) as session:
            row = (await session.execute(select(KvEntry).where(KvEntry.key == key))).scalars().first()
            if row is None:
                return None
            if row.expires_at is not None and _ensure_aware_utc(row.expires_at) <= _utcnow():
                await session.delete(row)
                return None
            return row.value

    async def set(self, key: str, value: str, ttl_s: float | None = None) -> None:
        now = _utcnow()
        # stored naive-UTC, matching what SQLite gives back
        expires_at = (now + timedelta(seconds=float(ttl_s))).replace(tzinfo=None) if ttl_s else None
        async with session_scope(self._sessions) as session:
            await session.merge(
                KvEntry(key=key, value=value, expires_at=expires_at, updated_at=now.replace(tzinfo=None))
            )

    async def delete(self, key: str) -> None:
        async with session_scope(self._sessions) as session:
            await session.execute(delete(KvEntry).where(KvEntry.key == key))
