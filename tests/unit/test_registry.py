"""Tests for the capability registry and group parsing."""

from __future__ import annotations

import pytest

from toolgate.core.errors import ConfigError, UnknownGroupError
from toolgate.groups.registry import CapabilityRegistry, ToolGroup, parse_group
from toolgate.tools.registry import default_registry


@pytest.fixture
def small() -> CapabilityRegistry:
    return CapabilityRegistry.from_procedures(
        [
            ("git_status", ToolGroup.GIT),
            ("fs_list", ToolGroup.FILESYSTEM),
            ("git_diff", ToolGroup.GIT),
        ]
    )


class TestParseGroup:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("git", ToolGroup.GIT),
            ("GIT", ToolGroup.GIT),
            (" file_ops ", ToolGroup.FILE_OPS),
            ("k8s", ToolGroup.KUBERNETES),
            ("gh", ToolGroup.GITHUB),
            ("state", ToolGroup.MCP),
            (ToolGroup.DIFF, ToolGroup.DIFF),
        ],
    )
    def test_known(self, value, expected):
        assert parse_group(value) is expected

    def test_unknown(self):
        with pytest.raises(UnknownGroupError) as exc_info:
            parse_group("nonsense")
        assert exc_info.value.group == "nonsense"

    def test_fifteen_groups(self):
        assert len(ToolGroup) == 15


class TestCapabilityRegistry:
    def test_groups_cover_every_group_in_order(self, small):
        ids = [info.id for info in small.groups()]
        assert ids == list(ToolGroup)

    def test_groups_fresh_iterator(self, small):
        assert list(small.groups()) == list(small.groups())

    def test_members_keep_insertion_order(self, small):
        assert small.group_members("git") == ("git_status", "git_diff")
        assert small.group_members(ToolGroup.SEARCH) == ()

    def test_group_members_unknown(self, small):
        with pytest.raises(UnknownGroupError):
            small.group_members("bogus")

    def test_group_of(self, small):
        assert small.group_of("fs_list") is ToolGroup.FILESYSTEM
        assert small.group_of("nope") is None

    def test_procedures_in_group_order(self, small):
        assert small.procedures() == ("fs_list", "git_status", "git_diff")

    def test_contains_and_len(self, small):
        assert "git_diff" in small
        assert "rg" not in small
        assert len(small) == 3

    def test_info(self, small):
        info = small.info("git")
        assert info.title == "Git Version Control"
        assert info.size == 2

    def test_validate_ok(self, small):
        small.validate(known=["git_status", "fs_list", "git_diff"])

    def test_validate_duplicate(self):
        reg = CapabilityRegistry(
            {ToolGroup.GIT: ["git_status"], ToolGroup.SYSTEM: ["git_status"]}
        )
        with pytest.raises(ConfigError, match="listed 2 times"):
            reg.validate()

    def test_validate_unimplemented_and_orphan(self, small):
        with pytest.raises(ConfigError) as exc_info:
            small.validate(known=["git_status", "fs_list", "extra"])
        message = str(exc_info.value)
        assert "git_diff is listed but not implemented" in message
        assert "extra belongs to no group" in message


class TestDefaultCatalog:
    def test_every_procedure_in_exactly_one_group(self):
        caps = default_registry().capabilities()
        names = caps.procedures()
        assert len(names) == len(set(names))
        for name in names:
            assert caps.group_of(name) is not None

    def test_every_group_has_members(self):
        caps = default_registry().capabilities()
        for info in caps.groups():
            assert info.size > 0, info.id

    def test_state_procedures_in_mcp_group(self):
        caps = default_registry().capabilities()
        assert "task_create" in caps.group_members(ToolGroup.MCP)
        assert "auth_check" in caps.group_members(ToolGroup.MCP)
