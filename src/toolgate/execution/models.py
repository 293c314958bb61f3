"""Execution request/result types.

Both are frozen: a request is built once by a procedure handler and a
result is built once by the facade.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from collections.abc import Mapping


class OutputFormat(enum.StrEnum):
    """Normalization hint declared by the caller."""

    AUTO = "auto"
    PLAIN = "plain"
    LINES = "lines"
    JSON = "json"
    JSONL = "jsonl"
    COLUMNS = "columns"
    CSV = "csv"
    TSV = "tsv"
    PATHS = "paths"
    LISTING = "listing"
    DISK_USAGE = "disk_usage"
    UNIFIED_DIFF = "unified_diff"
    FILE_TYPE = "file_type"


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """One subprocess invocation."""

    tool: str
    args: tuple[str, ...] = ()
    stdin: str | bytes | None = None
    timeout: float | None = None
    env: Mapping[str, str] | None = None
    cwd: str | None = None
    output_format: OutputFormat = OutputFormat.AUTO
    clear_env: bool = False

    def __post_init__(self) -> None:
        # Accept any sequence for args but store a tuple.
        if not isinstance(self.args, tuple):
            object.__setattr__(self, "args", tuple(self.args))
        if self.env is not None:
            object.__setattr__(self, "env", dict(self.env))

    @property
    def stdin_bytes(self) -> bytes | None:
        if self.stdin is None:
            return None
        if isinstance(self.stdin, str):
            return self.stdin.encode()
        return self.stdin


@dataclass(frozen=True, slots=True)
class NormalizedOutput:
    """Structured view of stdout.

    ``kind`` is ``"data"`` when stdout was parsed into lists/dicts and
    ``"text"`` when it is passed through as an opaque string.  When a
    parse was attempted and failed, ``normalized`` is False and
    ``error`` says why.
    """

    kind: Literal["text", "data"]
    value: Any
    format: OutputFormat
    normalized: bool = True
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Outcome of a process that ran to completion (any exit code)."""

    exit_code: int
    stdout: bytes
    stderr: bytes
    duration: float
    output: NormalizedOutput | None = None
    cached: bool = False
    truncated: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode(errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode(errors="replace")

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation handed back to MCP clients."""
        data: dict[str, Any] = {
            "success": self.success,
            "exit_code": self.exit_code,
            "duration_ms": round(self.duration * 1000, 1),
        }
        if self.output is not None:
            data["output"] = self.output.value
            data["output_kind"] = self.output.kind
            data["normalized"] = self.output.normalized
            if self.output.error:
                data["normalize_error"] = self.output.error
        else:
            data["output"] = self.stdout_text
        if self.stderr:
            data["stderr"] = self.stderr_text
        if self.cached:
            data["cached"] = True
        if self.truncated:
            data["truncated"] = True
        return data
