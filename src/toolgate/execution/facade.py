"""Execution facade: the one call contract every procedure goes through.

``Executor.execute`` validates the request, optionally serves it from
the result cache, runs it through :class:`ProcessRunner`, and
normalizes stdout.  A non-zero exit status is returned as data; only
bad requests, spawn failures, and timeouts raise.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from toolgate.core.errors import InvalidRequestError
from toolgate.execution.models import (
    ExecutionResult,
    NormalizedOutput,
    OutputFormat,
)
from toolgate.execution.normalize import normalize
from toolgate.execution.runner import ProcessRunner

if TYPE_CHECKING:
    from collections.abc import Mapping

    from toolgate.config.schema import ExecutionConfig
    from toolgate.execution.models import ExecutionRequest
    from toolgate.state.store import CacheSurface

logger = logging.getLogger(__name__)


def fingerprint(request: ExecutionRequest) -> str:
    """Deterministic cache key for a request.

    SHA-256 over a canonical JSON encoding of everything that can change
    the output: tool, argument list, stdin, cwd, env overrides, and the
    normalization hint.
    """
    stdin = request.stdin_bytes
    canonical = json.dumps(
        {
            "tool": request.tool,
            "args": list(request.args),
            "stdin": hashlib.sha256(stdin).hexdigest() if stdin is not None else None,
            "cwd": request.cwd,
            "env": sorted((request.env or {}).items()),
            "clear_env": request.clear_env,
            "format": request.output_format.value,
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return "exec:" + hashlib.sha256(canonical.encode()).hexdigest()


def _has_nul(value: str) -> bool:
    return "\x00" in value


def validate_request(request: ExecutionRequest) -> None:
    """Raise InvalidRequestError for requests that must never be spawned."""
    if not request.tool or not request.tool.strip():
        raise InvalidRequestError(request.tool, "Tool identifier must be non-empty")
    if _has_nul(request.tool):
        raise InvalidRequestError(request.tool, "Tool identifier contains a null byte")
    for index, arg in enumerate(request.args):
        if not isinstance(arg, str):
            msg = f"Argument {index} is {type(arg).__name__}, expected str"
            raise InvalidRequestError(request.tool, msg)
        if _has_nul(arg):
            raise InvalidRequestError(request.tool, f"Argument {index} contains a null byte")
    for key, value in (request.env or {}).items():
        if not key or "=" in key or _has_nul(key) or _has_nul(value):
            raise InvalidRequestError(request.tool, f"Invalid environment variable: {key!r}")
    if request.cwd is not None and _has_nul(request.cwd):
        raise InvalidRequestError(request.tool, "Working directory contains a null byte")
    if request.timeout is not None and request.timeout <= 0:
        raise InvalidRequestError(request.tool, "Timeout must be positive")


def _result_to_cache(result: ExecutionResult) -> dict[str, Any]:
    output = result.output
    return {
        "exit_code": result.exit_code,
        "stdout": base64.b64encode(result.stdout).decode("ascii"),
        "stderr": base64.b64encode(result.stderr).decode("ascii"),
        "duration": result.duration,
        "truncated": result.truncated,
        "output": None
        if output is None
        else {
            "kind": output.kind,
            "value": output.value,
            "format": output.format.value,
            "normalized": output.normalized,
            "error": output.error,
        },
    }


def _result_from_cache(data: Mapping[str, Any]) -> ExecutionResult:
    raw = data.get("output")
    output = None
    if raw is not None:
        output = NormalizedOutput(
            kind=raw["kind"],
            value=raw["value"],
            format=OutputFormat(raw["format"]),
            normalized=raw["normalized"],
            error=raw.get("error"),
        )
    return ExecutionResult(
        exit_code=data["exit_code"],
        stdout=base64.b64decode(data["stdout"]),
        stderr=base64.b64decode(data["stderr"]),
        duration=data["duration"],
        output=output,
        cached=True,
        truncated=data.get("truncated", False),
    )


class Executor:
    """Runs :class:`ExecutionRequest` objects and returns structured results.

    Holds only configuration and an optional cache surface; safe to share
    across concurrent calls.
    """

    def __init__(
        self,
        config: ExecutionConfig | None = None,
        *,
        cache: CacheSurface | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        from toolgate.config.schema import ExecutionConfig as ExecConfig

        self._config = config or ExecConfig()
        self._cache = cache
        self._runner = runner or ProcessRunner(
            max_output_bytes=self._config.max_output_bytes
        )

    @property
    def default_timeout(self) -> float:
        return self._config.default_timeout

    async def execute(
        self,
        request: ExecutionRequest,
        *,
        cache_ttl: int | None = None,
    ) -> ExecutionResult:
        """Execute *request*.

        Args:
            request: The validated-by-schema request from a procedure handler.
            cache_ttl: When set (and a cache is attached), serve from and
                populate the result cache with this TTL in seconds.

        Raises:
            InvalidRequestError: Empty tool, null bytes, bad env or timeout.
            SpawnFailedError: The process could not be started.
            ExecutionTimeoutError: The deadline passed; the process was killed.
            StoreUnavailableError: The cache could not be read or written.
        """
        validate_request(request)
        if self._config.env:
            request = _with_default_env(request, self._config.env)

        use_cache = cache_ttl is not None and self._cache is not None
        key = fingerprint(request) if use_cache else ""
        if use_cache:
            hit = await self._cache.get(key)  # type: ignore[union-attr]
            if hit is not None:
                logger.debug("Cache hit for %s (%s)", request.tool, key[:16])
                return _result_from_cache(hit)

        timeout = request.timeout or self._config.default_timeout
        raw = await self._runner.run(request, timeout)
        result = ExecutionResult(
            exit_code=raw.exit_code,
            stdout=raw.stdout,
            stderr=raw.stderr,
            duration=raw.duration,
            output=normalize(raw.stdout, request.output_format),
            truncated=raw.truncated,
        )

        if use_cache and result.success:
            await self._cache.put(key, _result_to_cache(result), cache_ttl)  # type: ignore[union-attr]
        return result


def _with_default_env(request: ExecutionRequest, defaults: Mapping[str, str]) -> ExecutionRequest:
    """Layer configured env defaults under the request's own overrides."""
    return replace(request, env={**defaults, **(request.env or {})})
