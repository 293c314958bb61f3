"""Tests for the execution facade."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from toolgate.config.schema import ExecutionConfig
from toolgate.core.errors import (
    ExecutionTimeoutError,
    InvalidRequestError,
    SpawnFailedError,
)
from toolgate.execution.facade import Executor, fingerprint, validate_request
from toolgate.execution.models import ExecutionRequest, OutputFormat

if TYPE_CHECKING:
    from pathlib import Path

    from toolgate.state.store import StateStore


# ─── Validation ───────────────────────────────────────────────


class TestValidateRequest:
    @pytest.mark.parametrize(
        "request_",
        [
            ExecutionRequest(tool=""),
            ExecutionRequest(tool="   "),
            ExecutionRequest(tool="rg\x00"),
            ExecutionRequest(tool="rg", args=("ok", "bad\x00arg")),
            ExecutionRequest(tool="rg", env={"A=B": "x"}),
            ExecutionRequest(tool="rg", env={"": "x"}),
            ExecutionRequest(tool="rg", env={"A": "x\x00"}),
            ExecutionRequest(tool="rg", cwd="/tmp\x00"),
            ExecutionRequest(tool="rg", timeout=0),
        ],
    )
    def test_rejected(self, request_: ExecutionRequest):
        with pytest.raises(InvalidRequestError):
            validate_request(request_)

    def test_non_string_argument(self):
        with pytest.raises(InvalidRequestError, match="expected str"):
            validate_request(ExecutionRequest(tool="rg", args=("a", 3)))  # type: ignore[arg-type]

    def test_accepted(self):
        validate_request(ExecutionRequest(tool="rg", args=("-n", "foo"), env={"A": "1"}))

    def test_args_stored_as_tuple(self):
        assert ExecutionRequest(tool="rg", args=["a", "b"]).args == ("a", "b")  # type: ignore[arg-type]


# ─── Fingerprint ──────────────────────────────────────────────


class TestFingerprint:
    def test_deterministic(self):
        a = ExecutionRequest(tool="rg", args=("x",), env={"B": "2", "A": "1"})
        b = ExecutionRequest(tool="rg", args=("x",), env={"A": "1", "B": "2"})
        assert fingerprint(a) == fingerprint(b)
        assert fingerprint(a).startswith("exec:")

    @pytest.mark.parametrize(
        "other",
        [
            ExecutionRequest(tool="fd", args=("x",)),
            ExecutionRequest(tool="rg", args=("y",)),
            ExecutionRequest(tool="rg", args=("x",), stdin="in"),
            ExecutionRequest(tool="rg", args=("x",), cwd="/srv"),
            ExecutionRequest(tool="rg", args=("x",), output_format=OutputFormat.LINES),
        ],
    )
    def test_sensitive_to_inputs(self, other: ExecutionRequest):
        assert fingerprint(ExecutionRequest(tool="rg", args=("x",))) != fingerprint(other)

    def test_arg_boundaries_matter(self):
        a = ExecutionRequest(tool="echo", args=("a b",))
        b = ExecutionRequest(tool="echo", args=("a", "b"))
        assert fingerprint(a) != fingerprint(b)


# ─── Execution ────────────────────────────────────────────────


class TestExecute:
    async def test_json_output(self, fake_tool: str):
        result = await Executor().execute(
            ExecutionRequest(
                tool=fake_tool,
                args=("--format", "json"),
                output_format=OutputFormat.JSON,
            )
        )
        assert result.success
        assert result.exit_code == 0
        assert result.output.kind == "data"
        assert result.output.value == {"items": [1, 2, 3]}
        assert result.to_dict()["output"] == {"items": [1, 2, 3]}

    async def test_lines_output(self, fake_tool: str):
        result = await Executor().execute(
            ExecutionRequest(tool=fake_tool, args=("--lines",), output_format=OutputFormat.LINES)
        )
        assert result.output.value == ["a", "b", "c"]

    async def test_nonzero_exit_not_raised(self, fake_tool: str):
        result = await Executor().execute(ExecutionRequest(tool=fake_tool, args=("--exit", "2")))
        assert not result.success
        assert result.exit_code == 2
        data = result.to_dict()
        assert data["success"] is False
        assert "something went wrong" in data["stderr"]

    async def test_nul_never_spawns(self, fake_tool: str, tmp_path: Path):
        counter = tmp_path / "count"
        with pytest.raises(InvalidRequestError):
            await Executor().execute(
                ExecutionRequest(tool=fake_tool, args=("--count", str(counter), "\x00"))
            )
        assert not counter.exists()

    async def test_spawn_failure(self):
        with pytest.raises(SpawnFailedError):
            await Executor().execute(ExecutionRequest(tool="no-such-tool-anywhere-xyz"))

    async def test_request_timeout_wins(self, fake_tool: str):
        executor = Executor(ExecutionConfig(default_timeout=30))
        with pytest.raises(ExecutionTimeoutError) as exc_info:
            await executor.execute(
                ExecutionRequest(tool=fake_tool, args=("--sleep", "30"), timeout=0.3)
            )
        assert exc_info.value.timeout == 0.3

    async def test_default_timeout_applies(self, fake_tool: str):
        executor = Executor(ExecutionConfig(default_timeout=0.3))
        with pytest.raises(ExecutionTimeoutError):
            await executor.execute(ExecutionRequest(tool=fake_tool, args=("--sleep", "30")))

    async def test_configured_env_under_request_env(self, fake_tool: str):
        executor = Executor(ExecutionConfig(env={"TG_A": "config", "TG_B": "config"}))
        a = await executor.execute(ExecutionRequest(tool=fake_tool, args=("--env", "TG_A")))
        b = await executor.execute(
            ExecutionRequest(tool=fake_tool, args=("--env", "TG_B"), env={"TG_B": "request"})
        )
        assert a.stdout == b"config"
        assert b.stdout == b"request"

    async def test_output_cap(self, fake_tool: str):
        executor = Executor(ExecutionConfig(max_output_bytes=10))
        result = await executor.execute(ExecutionRequest(tool=fake_tool, args=("--bytes", "50")))
        assert result.truncated
        assert result.to_dict()["truncated"] is True


# ─── Caching ──────────────────────────────────────────────────


class TestCaching:
    async def test_cache_hit_skips_process(
        self, fake_tool: str, tmp_path: Path, store: StateStore
    ):
        counter = tmp_path / "count"
        executor = Executor(cache=store.cache)
        request = ExecutionRequest(
            tool=fake_tool, args=("--count", str(counter)), output_format=OutputFormat.JSON
        )

        first = await executor.execute(request, cache_ttl=60)
        second = await executor.execute(request, cache_ttl=60)

        assert counter.read_text() == "x"
        assert first.cached is False
        assert second.cached is True
        assert second.output.value == {"ok": True}
        assert second.stdout == first.stdout

    async def test_cache_expires(
        self, fake_tool: str, tmp_path: Path, store: StateStore, clock
    ):
        counter = tmp_path / "count"
        executor = Executor(cache=store.cache)
        request = ExecutionRequest(tool=fake_tool, args=("--count", str(counter)))

        await executor.execute(request, cache_ttl=60)
        clock.advance(61)
        result = await executor.execute(request, cache_ttl=60)

        assert counter.read_text() == "xx"
        assert result.cached is False

    async def test_no_ttl_means_no_cache(self, fake_tool: str, tmp_path: Path, store: StateStore):
        counter = tmp_path / "count"
        executor = Executor(cache=store.cache)
        request = ExecutionRequest(tool=fake_tool, args=("--count", str(counter)))
        await executor.execute(request)
        await executor.execute(request)
        assert counter.read_text() == "xx"

    async def test_failures_not_cached(self, fake_tool: str, store: StateStore):
        executor = Executor(cache=store.cache)
        request = ExecutionRequest(tool=fake_tool, args=("--exit", "1"))
        await executor.execute(request, cache_ttl=60)
        assert await store.cache.get(fingerprint(request)) is None

    async def test_binary_stdout_round_trips(self, fake_tool: str, store: StateStore):
        executor = Executor(cache=store.cache)
        request = ExecutionRequest(tool=fake_tool, args=("--binary",))
        await executor.execute(request, cache_ttl=60)
        hit = await executor.execute(request, cache_ttl=60)
        assert hit.cached
        assert hit.stdout == b"\xff\xfe\x00"
        assert hit.output.normalized is False
