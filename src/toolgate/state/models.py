"""SQLAlchemy models for the embedded state store.

Four independent tables: result cache, forge auth memo, task ledger,
and scoped key/value context.  JSON values are stored as text.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Float, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    """Current UTC time for timestamps."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Declarative base for all toolgate state tables."""


# ── Cache ────────────────────────────────────────────────────────


class CacheEntry(Base):
    """A cached structured value, keyed by request fingerprint."""

    __tablename__ = "tool_cache"
    __table_args__ = (Index("ix_tool_cache_expires_at", "expires_at"),)

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    created_at: Mapped[float] = mapped_column(Float)
    ttl_seconds: Mapped[float | None] = mapped_column(Float, nullable=True, default=None)
    # created_at + ttl_seconds; NULL never expires.
    expires_at: Mapped[float | None] = mapped_column(Float, nullable=True, default=None)


# ── Auth memo ────────────────────────────────────────────────────


class AuthStatus(Base):
    """Last known authentication state for a forge CLI (gh, glab)."""

    __tablename__ = "auth_status"

    service: Mapped[str] = mapped_column(String(64), primary_key=True)
    authenticated: Mapped[bool] = mapped_column(Boolean, default=False)
    last_checked: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)


# ── Tasks ────────────────────────────────────────────────────────


class Task(Base):
    """A session task with free-form status and payload."""

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_status", "status"),
        Index("ix_tasks_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    status: Mapped[str] = mapped_column(String(50), default="pending")
    payload: Mapped[str] = mapped_column(Text, default="null")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )


# ── Context ──────────────────────────────────────────────────────


class ContextEntry(Base):
    """A key/value pair within a scope (session, project, global)."""

    __tablename__ = "context"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    scope: Mapped[str] = mapped_column(String(20), primary_key=True, default="session")
    value: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
