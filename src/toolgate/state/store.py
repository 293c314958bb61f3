"""State store: cache, auth memo, tasks, and context over one SQLite file.

Every public operation is its own transaction on the single shared
connection, serialized by one ``asyncio.Lock``.  Storage failures are
logged and re-raised as :class:`StoreUnavailableError`; nothing here
degrades silently to "absent".
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, literal_column, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from toolgate.core.errors import NotFoundError, StoreUnavailableError
from toolgate.state.db import create_engine, ensure_schema
from toolgate.state.models import AuthStatus, CacheEntry, ContextEntry, Task

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

logger = logging.getLogger(__name__)

CONTEXT_SCOPES = ("session", "project", "global")


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class AuthStatusRecord:
    service: str
    authenticated: bool
    last_checked: datetime
    detail: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "service": self.service,
            "authenticated": self.authenticated,
            "last_checked": self.last_checked.isoformat(),
            "detail": self.detail,
        }


@dataclass(frozen=True, slots=True)
class TaskRecord:
    id: str
    status: str
    payload: Any
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def _task_record(row: Task) -> TaskRecord:
    return TaskRecord(
        id=row.id,
        status=row.status,
        payload=json.loads(row.payload),
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


def _auth_record(row: AuthStatus) -> AuthStatusRecord:
    return AuthStatusRecord(
        service=row.service,
        authenticated=row.authenticated,
        last_checked=_as_utc(row.last_checked),
        detail=json.loads(row.detail) if row.detail is not None else None,
    )


class StateStore:
    """Handle to the embedded store; open once, share everywhere."""

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._engine = engine
        self._factory = async_sessionmaker(engine, expire_on_commit=False)
        self._lock = asyncio.Lock()
        self.clock = clock
        self.cache = CacheSurface(self)
        self.auth = AuthSurface(self)
        self.tasks = TaskSurface(self)
        self.context = ContextSurface(self)

    @classmethod
    async def open(
        cls,
        url: str,
        *,
        clock: Callable[[], float] = time.time,
    ) -> StateStore:
        """Create the engine, apply the schema, and return a ready store.

        Raises:
            StoreUnavailableError: If the file cannot be created or opened.
        """
        try:
            engine = create_engine(url)
            await ensure_schema(engine)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Cannot open state store at %s: %s", url, exc)
            msg = f"Cannot open state store: {exc}"
            raise StoreUnavailableError(msg) from exc
        logger.debug("State store opened at %s", url)
        return cls(engine, clock=clock)

    async def close(self) -> None:
        async with self._lock:
            await self._engine.dispose()
        logger.debug("State store closed")

    def now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), UTC)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """One serialized transaction; commits on success, rolls back on error."""
        async with self._lock:
            try:
                async with self._factory() as session, session.begin():
                    yield session
            except (SQLAlchemyError, OSError) as exc:
                logger.error("State store operation failed: %s", exc)
                msg = f"State store unavailable: {exc}"
                raise StoreUnavailableError(msg) from exc


# ── Cache ────────────────────────────────────────────────────────


class CacheSurface:
    """TTL result cache. An expired entry reads as absent and is deleted."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    async def get(self, key: str) -> Any | None:
        now = self._store.clock()
        async with self._store.transaction() as session:
            entry = await session.get(CacheEntry, key)
            if entry is None:
                return None
            if entry.expires_at is not None and entry.expires_at <= now:
                await session.delete(entry)
                logger.debug("Evicted expired cache entry %s", key)
                return None
            return json.loads(entry.value)

    async def put(self, key: str, value: Any, ttl: float | None) -> None:
        """Store *value* under *key*, replacing any previous entry.

        Args:
            ttl: Lifetime in seconds; ``None`` never expires.

        Raises:
            ValueError: If *ttl* is not positive.
        """
        if ttl is not None and ttl <= 0:
            msg = f"ttl must be positive, got {ttl}"
            raise ValueError(msg)
        now = self._store.clock()
        async with self._store.transaction() as session:
            await session.merge(
                CacheEntry(
                    key=key,
                    value=_dumps(value),
                    created_at=now,
                    ttl_seconds=ttl,
                    expires_at=now + ttl if ttl is not None else None,
                )
            )

    async def delete(self, key: str) -> bool:
        async with self._store.transaction() as session:
            result = await session.execute(delete(CacheEntry).where(CacheEntry.key == key))
            return bool(result.rowcount)

    async def purge_expired(self) -> int:
        """Delete every expired entry. Returns the number removed."""
        now = self._store.clock()
        async with self._store.transaction() as session:
            result = await session.execute(
                delete(CacheEntry).where(
                    CacheEntry.expires_at.is_not(None), CacheEntry.expires_at <= now
                )
            )
            count = result.rowcount or 0
        if count:
            logger.info("Purged %d expired cache entries", count)
        return count


# ── Auth memo ────────────────────────────────────────────────────


class AuthSurface:
    """Last-known forge auth state. No TTL; callers judge freshness."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    async def get_status(self, service: str) -> AuthStatusRecord | None:
        async with self._store.transaction() as session:
            row = await session.get(AuthStatus, service)
            return _auth_record(row) if row is not None else None

    async def set_status(
        self,
        service: str,
        authenticated: bool,
        detail: Any = None,
    ) -> AuthStatusRecord:
        """Upsert *service*, stamping ``last_checked`` with the store clock."""
        checked = self._store.now()
        async with self._store.transaction() as session:
            row = await session.merge(
                AuthStatus(
                    service=service,
                    authenticated=authenticated,
                    last_checked=checked,
                    detail=_dumps(detail) if detail is not None else None,
                )
            )
            await session.flush()
            return _auth_record(row)

    async def list_statuses(self) -> list[AuthStatusRecord]:
        async with self._store.transaction() as session:
            result = await session.execute(select(AuthStatus).order_by(AuthStatus.service))
            return [_auth_record(row) for row in result.scalars()]


# ── Tasks ────────────────────────────────────────────────────────


class TaskSurface:
    """Session task ledger; ids are UUID4 strings."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    async def create(self, payload: Any, status: str = "pending") -> str:
        now = self._store.now()
        async with self._store.transaction() as session:
            task = Task(status=status, payload=_dumps(payload), created_at=now, updated_at=now)
            session.add(task)
            await session.flush()
            task_id = task.id
        logger.debug("Created task %s (%s)", task_id, status)
        return task_id

    async def get(self, task_id: str) -> TaskRecord | None:
        async with self._store.transaction() as session:
            row = await session.get(Task, task_id)
            return _task_record(row) if row is not None else None

    async def update(self, task_id: str, status: str, payload: Any = None) -> TaskRecord:
        """Set *status* (and *payload*, unless None) on an existing task.

        Raises:
            NotFoundError: If *task_id* does not exist.
        """
        async with self._store.transaction() as session:
            row = await session.get(Task, task_id)
            if row is None:
                raise NotFoundError("task", task_id)
            row.status = status
            if payload is not None:
                row.payload = _dumps(payload)
            row.updated_at = self._store.now()
            await session.flush()
            return _task_record(row)

    async def delete(self, task_id: str) -> bool:
        """Remove *task_id*. Deleting a missing task is not an error."""
        async with self._store.transaction() as session:
            result = await session.execute(delete(Task).where(Task.id == task_id))
            return bool(result.rowcount)

    async def clear(self) -> int:
        async with self._store.transaction() as session:
            result = await session.execute(delete(Task))
            return result.rowcount or 0

    async def list(self, status: str | None = None) -> Sequence[TaskRecord]:
        """Tasks by creation time ascending; insertion order breaks ties."""
        stmt = select(Task).order_by(Task.created_at, literal_column("tasks.rowid"))
        if status is not None:
            stmt = stmt.where(Task.status == status)
        async with self._store.transaction() as session:
            result = await session.execute(stmt)
            return [_task_record(row) for row in result.scalars()]


# ── Context ──────────────────────────────────────────────────────


def _check_scope(scope: str) -> str:
    if scope not in CONTEXT_SCOPES:
        msg = f"Invalid context scope {scope!r}; expected one of {', '.join(CONTEXT_SCOPES)}"
        raise ValueError(msg)
    return scope


class ContextSurface:
    """Free-form key/value scratch space, namespaced by scope."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    async def set(self, key: str, value: Any, scope: str = "session") -> None:
        _check_scope(scope)
        async with self._store.transaction() as session:
            await session.merge(
                ContextEntry(key=key, scope=scope, value=_dumps(value), updated_at=self._store.now())
            )

    async def get(self, key: str, scope: str = "session") -> Any | None:
        _check_scope(scope)
        async with self._store.transaction() as session:
            row = await session.get(ContextEntry, (key, scope))
            return json.loads(row.value) if row is not None else None

    async def list_keys(self, scope: str = "session") -> set[str]:
        _check_scope(scope)
        async with self._store.transaction() as session:
            result = await session.execute(
                select(ContextEntry.key).where(ContextEntry.scope == scope)
            )
            return set(result.scalars())

    async def delete(self, key: str, scope: str = "session") -> bool:
        _check_scope(scope)
        async with self._store.transaction() as session:
            result = await session.execute(
                delete(ContextEntry).where(ContextEntry.key == key, ContextEntry.scope == scope)
            )
            return bool(result.rowcount)

    async def clear(self, scope: str = "session") -> int:
        """Drop every key in *scope*. Returns the number removed."""
        _check_scope(scope)
        async with self._store.transaction() as session:
            result = await session.execute(delete(ContextEntry).where(ContextEntry.scope == scope))
            return result.rowcount or 0
