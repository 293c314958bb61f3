"""Embedded state store."""

from toolgate.state.store import (
    CONTEXT_SCOPES,
    AuthStatusRecord,
    AuthSurface,
    CacheSurface,
    ContextSurface,
    StateStore,
    TaskRecord,
    TaskSurface,
)

__all__ = [
    "CONTEXT_SCOPES",
    "AuthStatusRecord",
    "AuthSurface",
    "CacheSurface",
    "ContextSurface",
    "StateStore",
    "TaskRecord",
    "TaskSurface",
]
