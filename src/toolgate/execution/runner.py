"""Process runner: spawn, capture, deadline, exit status.

Streams are drained incrementally into buffers so that a timeout can
still report whatever the process wrote before it was killed.  Each
child is started in its own session so the kill reaches any
grandchildren holding the pipes open.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
import signal
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from toolgate.core.errors import ExecutionTimeoutError, SpawnFailedError

if TYPE_CHECKING:
    from toolgate.execution.models import ExecutionRequest

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024
# After a kill, how long to wait for the pipes to reach EOF.
_DRAIN_GRACE = 2.0


@dataclass(frozen=True, slots=True)
class RawOutput:
    """Unnormalized result of a finished process."""

    exit_code: int
    stdout: bytes
    stderr: bytes
    duration: float
    truncated: bool = False


class _Capture:
    """Byte sink with an optional size cap; keeps draining past the cap."""

    def __init__(self, limit: int | None) -> None:
        self._buf = bytearray()
        self._limit = limit
        self.truncated = False

    def feed(self, chunk: bytes) -> None:
        if self._limit is None:
            self._buf.extend(chunk)
            return
        room = self._limit - len(self._buf)
        if room > 0:
            self._buf.extend(chunk[:room])
        if len(chunk) > max(room, 0):
            self.truncated = True

    def getvalue(self) -> bytes:
        return bytes(self._buf)


async def _pump(stream: asyncio.StreamReader | None, sink: _Capture) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return
        sink.feed(chunk)


async def _feed_stdin(proc: asyncio.subprocess.Process, data: bytes | None) -> None:
    if proc.stdin is None:
        return
    try:
        if data:
            proc.stdin.write(data)
            await proc.stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # The child exited or closed stdin without reading everything.
        pass
    finally:
        proc.stdin.close()


def resolve_binary(tool: str, path: str | None = None) -> str:
    """Resolve *tool* on ``PATH`` (or as a path), raising SpawnFailedError."""
    resolved = shutil.which(tool, path=path)
    if resolved is None:
        raise SpawnFailedError(tool, f"Command '{tool}' not found in PATH")
    return resolved


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(proc.pid, signal.SIGKILL)
    with contextlib.suppress(ProcessLookupError):
        proc.kill()


class ProcessRunner:
    """Runs one subprocess per call; holds no per-call state."""

    def __init__(self, *, max_output_bytes: int | None = None) -> None:
        self._max_output_bytes = max_output_bytes

    async def run(self, request: ExecutionRequest, timeout: float) -> RawOutput:
        """Run the request to completion or until *timeout* seconds pass.

        Raises:
            SpawnFailedError: Binary missing, not executable, bad cwd, ...
            ExecutionTimeoutError: Deadline hit; the process group is killed.
        """
        env: dict[str, str] | None = None
        if request.clear_env:
            env = dict(request.env or {})
        elif request.env:
            env = {**os.environ, **request.env}

        try:
            binary = resolve_binary(request.tool, path=env.get("PATH") if env else None)
        except SpawnFailedError as exc:
            logger.warning("Spawn failed for %s: %s", request.tool, exc.reason)
            raise
        stdin_data = request.stdin_bytes
        started = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                binary,
                *request.args,
                stdin=(
                    asyncio.subprocess.PIPE
                    if stdin_data is not None
                    else asyncio.subprocess.DEVNULL
                ),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=request.cwd,
                env=env,
                start_new_session=True,
            )
        except OSError as exc:
            logger.warning("Spawn failed for %s: %s", request.tool, exc)
            raise SpawnFailedError(
                request.tool, exc.strerror or str(exc), exc.errno
            ) from exc

        logger.debug("Spawned %s (pid %d)", binary, proc.pid)

        out = _Capture(self._max_output_bytes)
        err = _Capture(self._max_output_bytes)
        finish = asyncio.ensure_future(self._collect(proc, stdin_data, out, err))

        try:
            exit_code = await asyncio.wait_for(asyncio.shield(finish), timeout=timeout)
        except TimeoutError:
            _kill_group(proc)
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(finish, timeout=_DRAIN_GRACE)
            if proc.returncode is None:
                await proc.wait()
            logger.warning(
                "%s timed out after %gs, killed pid %d", request.tool, timeout, proc.pid
            )
            raise ExecutionTimeoutError(
                request.tool,
                timeout,
                stdout=out.getvalue(),
                stderr=err.getvalue(),
                pid=proc.pid,
            ) from None
        except asyncio.CancelledError:
            _kill_group(proc)
            finish.cancel()
            if proc.returncode is None:
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(asyncio.shield(proc.wait()), timeout=_DRAIN_GRACE)
            logger.debug("%s cancelled, killed pid %d", request.tool, proc.pid)
            raise

        duration = time.monotonic() - started
        logger.debug("%s exited %d in %.3fs", request.tool, exit_code, duration)
        return RawOutput(
            exit_code=exit_code,
            stdout=out.getvalue(),
            stderr=err.getvalue(),
            duration=duration,
            truncated=out.truncated or err.truncated,
        )

    @staticmethod
    async def _collect(
        proc: asyncio.subprocess.Process,
        stdin_data: bytes | None,
        out: _Capture,
        err: _Capture,
    ) -> int:
        await asyncio.gather(
            _pump(proc.stdout, out),
            _pump(proc.stderr, err),
            _feed_stdin(proc, stdin_data),
        )
        return await proc.wait()
