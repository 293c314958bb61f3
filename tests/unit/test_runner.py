"""Tests for the process runner."""

from __future__ import annotations

import asyncio
import os
import time
from typing import TYPE_CHECKING

import pytest

from toolgate.core.errors import ExecutionTimeoutError, SpawnFailedError
from toolgate.execution.models import ExecutionRequest
from toolgate.execution.runner import ProcessRunner, _Capture, resolve_binary

if TYPE_CHECKING:
    from pathlib import Path


def _req(tool: str, *args: str, **kwargs) -> ExecutionRequest:
    return ExecutionRequest(tool=tool, args=args, **kwargs)


# ─── Capture ──────────────────────────────────────────────────


class TestCapture:
    def test_unbounded(self):
        cap = _Capture(None)
        cap.feed(b"abc")
        cap.feed(b"def")
        assert cap.getvalue() == b"abcdef"
        assert cap.truncated is False

    def test_cap_marks_truncated(self):
        cap = _Capture(4)
        cap.feed(b"abc")
        cap.feed(b"def")
        cap.feed(b"ghi")
        assert cap.getvalue() == b"abcd"
        assert cap.truncated is True

    def test_exact_fit_not_truncated(self):
        cap = _Capture(3)
        cap.feed(b"abc")
        assert cap.truncated is False


# ─── Spawning ─────────────────────────────────────────────────


class TestSpawn:
    def test_resolve_missing_binary(self):
        with pytest.raises(SpawnFailedError, match="not found in PATH"):
            resolve_binary("definitely-not-a-real-tool-xyz")

    async def test_missing_binary(self):
        with pytest.raises(SpawnFailedError) as exc_info:
            await ProcessRunner().run(_req("definitely-not-a-real-tool-xyz"), 5)
        assert exc_info.value.tool == "definitely-not-a-real-tool-xyz"

    async def test_missing_cwd(self, fake_tool: str, tmp_path: Path):
        request = _req(fake_tool, "--cwd", cwd=str(tmp_path / "missing"))
        with pytest.raises(SpawnFailedError):
            await ProcessRunner().run(request, 5)

    async def test_not_executable(self, tmp_path: Path):
        path = tmp_path / "plain.txt"
        path.write_text("not a program")
        with pytest.raises(SpawnFailedError):
            await ProcessRunner().run(_req(str(path)), 5)


# ─── Completion ───────────────────────────────────────────────


class TestCompletion:
    async def test_captures_stdout(self, fake_tool: str):
        raw = await ProcessRunner().run(_req(fake_tool, "--echo", "hello", "world"), 10)
        assert raw.exit_code == 0
        assert raw.stdout == b"hello world"
        assert raw.stderr == b""
        assert raw.duration >= 0

    async def test_nonzero_exit_is_data(self, fake_tool: str):
        raw = await ProcessRunner().run(_req(fake_tool, "--exit", "3"), 10)
        assert raw.exit_code == 3
        assert raw.stdout == b"partial"
        assert b"something went wrong" in raw.stderr

    async def test_stdin_delivered(self, fake_tool: str):
        raw = await ProcessRunner().run(_req(fake_tool, "--stdin", stdin="quiet"), 10)
        assert raw.stdout == b"QUIET"

    async def test_stdin_bytes(self, fake_tool: str):
        raw = await ProcessRunner().run(_req(fake_tool, "--stdin", stdin=b"abc"), 10)
        assert raw.stdout == b"ABC"

    async def test_env_override(self, fake_tool: str):
        request = _req(fake_tool, "--env", "TOOLGATE_TEST_VAR", env={"TOOLGATE_TEST_VAR": "v1"})
        raw = await ProcessRunner().run(request, 10)
        assert raw.stdout == b"v1"

    async def test_env_inherited(self, fake_tool: str, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLGATE_INHERITED", "yes")
        raw = await ProcessRunner().run(_req(fake_tool, "--env", "TOOLGATE_INHERITED"), 10)
        assert raw.stdout == b"yes"

    async def test_clear_env(self, fake_tool: str, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOOLGATE_INHERITED", "yes")
        request = _req(fake_tool, "--env", "TOOLGATE_INHERITED", clear_env=True)
        raw = await ProcessRunner().run(request, 10)
        assert raw.stdout == b"<unset>"

    async def test_cwd(self, fake_tool: str, tmp_path: Path):
        work = tmp_path / "work"
        work.mkdir()
        raw = await ProcessRunner().run(_req(fake_tool, "--cwd", cwd=str(work)), 10)
        assert os.path.realpath(raw.stdout.decode()) == os.path.realpath(work)

    async def test_arguments_not_shell_interpreted(self, fake_tool: str):
        raw = await ProcessRunner().run(_req(fake_tool, "--echo", "$HOME; rm -rf /"), 10)
        assert raw.stdout == b"$HOME; rm -rf /"

    async def test_output_cap(self, fake_tool: str):
        raw = await ProcessRunner(max_output_bytes=100).run(
            _req(fake_tool, "--bytes", "5000"), 10
        )
        assert raw.stdout == b"x" * 100
        assert raw.truncated is True

    async def test_binary_output_preserved(self, fake_tool: str):
        raw = await ProcessRunner().run(_req(fake_tool, "--binary"), 10)
        assert raw.stdout == b"\xff\xfe\x00"


# ─── Timeouts ─────────────────────────────────────────────────


class TestTimeout:
    async def test_kills_and_reports_partial_output(self, fake_tool: str):
        started = time.monotonic()
        with pytest.raises(ExecutionTimeoutError) as exc_info:
            await ProcessRunner().run(_req(fake_tool, "--sleep", "30"), 0.5)
        elapsed = time.monotonic() - started

        err = exc_info.value
        assert elapsed < 5
        assert err.timeout == 0.5
        assert b"started" in err.stdout
        assert b"finished" not in err.stdout
        assert err.pid is not None
        with pytest.raises(ProcessLookupError):
            os.kill(err.pid, 0)

    async def test_fast_process_within_deadline(self, fake_tool: str):
        raw = await ProcessRunner().run(_req(fake_tool, "--sleep", "0.1"), 10)
        assert raw.stdout == b"started\nfinished\n"


# ─── Cancellation ─────────────────────────────────────────────


class TestCancellation:
    async def test_cancel_kills_and_reaps(self, fake_tool: str, monkeypatch: pytest.MonkeyPatch):
        spawned: list[asyncio.subprocess.Process] = []
        real_exec = asyncio.create_subprocess_exec

        async def recording_exec(*args, **kwargs):
            proc = await real_exec(*args, **kwargs)
            spawned.append(proc)
            return proc

        monkeypatch.setattr(asyncio, "create_subprocess_exec", recording_exec)
        task = asyncio.create_task(ProcessRunner().run(_req(fake_tool, "--sleep", "30"), 30))
        for _ in range(500):
            if spawned:
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.2)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        (proc,) = spawned
        assert proc.returncode is not None
        with pytest.raises(ProcessLookupError):
            os.kill(proc.pid, 0)
