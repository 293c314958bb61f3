"""Tests for per-session group visibility."""

from __future__ import annotations

import threading

import pytest

from toolgate.core.errors import UnknownGroupError
from toolgate.groups.profiles import resolve_profile
from toolgate.groups.registry import CapabilityRegistry, ToolGroup
from toolgate.groups.visibility import META_OPERATIONS, ReadWriteLock, VisibilityState


@pytest.fixture
def registry() -> CapabilityRegistry:
    return CapabilityRegistry.from_procedures(
        [
            ("fs_list", ToolGroup.FILESYSTEM),
            ("git_status", ToolGroup.GIT),
            ("git_log", ToolGroup.GIT),
            ("kubectl_get", ToolGroup.KUBERNETES),
        ]
    )


class TestVisibilityState:
    def test_initial_enabled(self, registry):
        state = VisibilityState(registry, ["git"])
        assert state.enabled() == frozenset({ToolGroup.GIT})
        assert state.is_enabled("git")
        assert not state.is_enabled(ToolGroup.KUBERNETES)

    def test_enable_makes_members_visible(self, registry):
        state = VisibilityState(registry)
        assert not state.is_visible("kubectl_get")
        assert state.enable("kubernetes") is True
        assert state.is_visible("kubectl_get")

    def test_enable_idempotent(self, registry):
        state = VisibilityState(registry, ["git"])
        assert state.enable("git") is False
        assert state.enabled() == frozenset({ToolGroup.GIT})

    def test_disable(self, registry):
        state = VisibilityState(registry, ["git"])
        assert state.disable("git") is True
        assert state.disable("git") is False
        assert not state.is_visible("git_status")

    def test_unknown_group(self, registry):
        state = VisibilityState(registry)
        with pytest.raises(UnknownGroupError):
            state.enable("bogus")
        with pytest.raises(UnknownGroupError):
            state.disable("bogus")

    def test_meta_operations_always_visible(self, registry):
        state = VisibilityState(registry)
        for name in META_OPERATIONS:
            assert state.is_visible(name)

    def test_unknown_procedure_not_visible(self, registry):
        assert not VisibilityState(registry, list(ToolGroup)).is_visible("rm_rf")

    def test_visible_procedures_registry_order(self, registry):
        state = VisibilityState(registry, ["kubernetes", "filesystem", "git"])
        assert state.visible_procedures() == [
            "fs_list",
            "git_status",
            "git_log",
            "kubectl_get",
        ]

    def test_visible_excludes_meta(self, registry):
        state = VisibilityState(registry, list(ToolGroup))
        assert not META_OPERATIONS & set(state.visible_procedures())

    def test_from_profile_with_extras(self, registry):
        state = VisibilityState.from_profile(
            registry, resolve_profile("explore"), extra_groups=["k8s"]
        )
        assert state.enabled() == frozenset(
            {ToolGroup.FILESYSTEM, ToolGroup.SEARCH, ToolGroup.GIT, ToolGroup.KUBERNETES}
        )

    def test_enabled_snapshot_is_immutable(self, registry):
        state = VisibilityState(registry, ["git"])
        snapshot = state.enabled()
        state.enable("filesystem")
        assert snapshot == frozenset({ToolGroup.GIT})


class TestConcurrency:
    def test_concurrent_toggles_and_reads(self, registry):
        state = VisibilityState(registry, ["git"])
        errors: list[AssertionError] = []
        allowed = {
            frozenset({ToolGroup.GIT}),
            frozenset({ToolGroup.GIT, ToolGroup.KUBERNETES}),
        }

        def toggle() -> None:
            for _ in range(200):
                state.enable("kubernetes")
                state.disable("kubernetes")

        def read() -> None:
            try:
                for _ in range(500):
                    assert state.enabled() in allowed
                    assert state.is_visible("git_status")
            except AssertionError as e:
                errors.append(e)

        threads = [threading.Thread(target=toggle) for _ in range(2)]
        threads += [threading.Thread(target=read) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert not errors
        assert state.enabled() == frozenset({ToolGroup.GIT})

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        inside: list[str] = []
        writer_in = threading.Event()
        release = threading.Event()

        def writer() -> None:
            with lock.write():
                inside.append("writer")
                writer_in.set()
                release.wait(5)
                inside.append("writer-done")

        def reader() -> None:
            with lock.read():
                inside.append("reader")

        w = threading.Thread(target=writer)
        w.start()
        assert writer_in.wait(5)
        r = threading.Thread(target=reader)
        r.start()
        r.join(0.2)
        assert inside == ["writer"]
        release.set()
        w.join(5)
        r.join(5)
        assert inside == ["writer", "writer-done", "reader"]
