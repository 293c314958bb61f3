"""Shared test fixtures for toolgate."""

from __future__ import annotations

import stat
import sys
from typing import TYPE_CHECKING

import pytest

from toolgate.state.store import StateStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

_FAKE_TOOL = """\
#!{python}
import os
import sys
import time

args = sys.argv[1:]
mode = args[0] if args else ""

if args[:2] == ["--format", "json"]:
    print('{{"items":[1,2,3]}}')
elif mode == "--lines":
    sys.stdout.write("a\\nb\\nc\\n")
elif mode == "--echo":
    sys.stdout.write(" ".join(args[1:]))
elif mode == "--stdin":
    sys.stdout.write(sys.stdin.read().upper())
elif mode == "--env":
    sys.stdout.write(os.environ.get(args[1], "<unset>"))
elif mode == "--cwd":
    sys.stdout.write(os.getcwd())
elif mode == "--exit":
    sys.stdout.write("partial")
    sys.stderr.write("something went wrong\\n")
    sys.exit(int(args[1]))
elif mode == "--sleep":
    sys.stdout.write("started\\n")
    sys.stdout.flush()
    time.sleep(float(args[1]))
    sys.stdout.write("finished\\n")
elif mode == "--count":
    with open(args[1], "a") as fh:
        fh.write("x")
    print('{{"ok":true}}')
elif mode == "--bytes":
    sys.stdout.write("x" * int(args[1]))
elif mode == "--binary":
    sys.stdout.buffer.write(b"\\xff\\xfe\\x00")
else:
    sys.stdout.write("usage: fake-tool MODE\\n")
"""


class FakeClock:
    """Manually advanced epoch clock for TTL tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep user/project config files and env overrides out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("TOOLGATE_CONFIG", raising=False)
    monkeypatch.delenv("TOOLGATE_PROFILE", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def store(clock: FakeClock) -> AsyncIterator[StateStore]:
    """In-memory state store driven by the fake clock."""
    s = await StateStore.open("sqlite+aiosqlite://", clock=clock)
    yield s
    await s.close()


@pytest.fixture
def fake_tool(tmp_path: Path) -> str:
    """Path to an executable script whose behavior is chosen by its first argument."""
    path = tmp_path / "bin" / "fake-tool"
    path.parent.mkdir()
    path.write_text(_FAKE_TOOL.format(python=sys.executable))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)
