"""Engine bootstrap for the state store.

The store talks to SQLite through a single shared connection
(``StaticPool``); the store's own lock serializes access to it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from toolgate.state.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def expand_url(url: str) -> str:
    """Expand ``~`` in a SQLite URL and create the parent directory."""
    if "~" in url:
        url = url.replace("~", str(Path.home()))
    if url.startswith("sqlite"):
        db_path = url.split("///")[-1] if "///" in url else ""
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return url


def create_engine(url: str) -> AsyncEngine:
    """Create the async engine for *url*.

    Raises:
        OSError: If the database directory cannot be created.
    """
    url = expand_url(url)
    is_memory = ":memory:" in url
    engine = create_async_engine(
        url,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_pragmas(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
        cursor = dbapi_conn.cursor()
        if not is_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    return engine


async def ensure_schema(engine: AsyncEngine) -> None:
    """Create any missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug("State schema ready (%s)", engine.url.database or ":memory:")
