"""Exception hierarchy for toolgate.

Every module imports from here. The hierarchy is:

    ToolgateError
    ├── ExecutionError(tool)
    │   ├── InvalidRequestError
    │   ├── SpawnFailedError(reason, errno)
    │   └── ExecutionTimeoutError(timeout, stdout, stderr)
    ├── UnknownGroupError(group)
    ├── UnknownProfileError(profile, available)
    ├── UnknownProcedureError(name)
    ├── NotFoundError(kind, key)
    ├── ConfigError
    └── StorageError
        └── StoreUnavailableError
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ToolgateError(Exception):
    """Base exception for all toolgate errors."""


# ─── Execution Errors ─────────────────────────────────────────


class ExecutionError(ToolgateError):
    """Base for errors raised by the execution facade."""

    def __init__(self, tool: str, message: str) -> None:
        self.tool = tool
        super().__init__(f"[{tool or '<empty>'}] {message}")


class InvalidRequestError(ExecutionError):
    """Malformed execution request; never reaches the subprocess."""


class SpawnFailedError(ExecutionError):
    """The OS could not start the process (not found, permission denied)."""

    def __init__(self, tool: str, reason: str, errno: int | None = None) -> None:
        self.reason = reason
        self.errno = errno
        super().__init__(tool, f"Failed to start process: {reason}")


class ExecutionTimeoutError(ExecutionError):
    """Deadline exceeded. Carries whatever output was captured before the kill."""

    def __init__(
        self,
        tool: str,
        timeout: float,
        *,
        stdout: bytes = b"",
        stderr: bytes = b"",
        pid: int | None = None,
    ) -> None:
        self.timeout = timeout
        self.stdout = stdout
        self.stderr = stderr
        self.pid = pid
        super().__init__(tool, f"Timed out after {timeout:g}s")


# ─── Capability Errors ────────────────────────────────────────


class UnknownGroupError(ToolgateError):
    """Group identifier is not one of the known tool groups."""

    def __init__(self, group: str) -> None:
        self.group = group
        super().__init__(f"Unknown tool group: {group}")


class UnknownProfileError(ToolgateError):
    """Session profile name is not recognized."""

    def __init__(self, profile: str, available: Iterable[str] = ()) -> None:
        self.profile = profile
        self.available = tuple(available)
        msg = f"Unknown profile: {profile}"
        if self.available:
            msg += f". Available: {', '.join(self.available)}"
        super().__init__(msg)


class UnknownProcedureError(ToolgateError):
    """Procedure name is not in the catalog or not currently visible."""

    def __init__(self, name: str, reason: str = "not found") -> None:
        self.name = name
        super().__init__(f"Procedure {reason}: {name}")


# ─── State Errors ─────────────────────────────────────────────


class NotFoundError(ToolgateError):
    """A stored record (task, ...) does not exist."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind.capitalize()} not found: {key}")


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(ToolgateError):
    """Invalid configuration."""


# ─── Storage Errors ───────────────────────────────────────────


class StorageError(ToolgateError):
    """Persistence layer error."""


class StoreUnavailableError(StorageError):
    """Underlying storage I/O failed (disk full, corruption, permission)."""
