"""Core types, errors, and shared utilities."""

from toolgate.core.errors import (
    ConfigError,
    ExecutionError,
    ExecutionTimeoutError,
    InvalidRequestError,
    NotFoundError,
    SpawnFailedError,
    StorageError,
    StoreUnavailableError,
    ToolgateError,
    UnknownGroupError,
    UnknownProcedureError,
    UnknownProfileError,
)

__all__ = [
    "ConfigError",
    "ExecutionError",
    "ExecutionTimeoutError",
    "InvalidRequestError",
    "NotFoundError",
    "SpawnFailedError",
    "StorageError",
    "StoreUnavailableError",
    "ToolgateError",
    "UnknownGroupError",
    "UnknownProcedureError",
    "UnknownProfileError",
]
