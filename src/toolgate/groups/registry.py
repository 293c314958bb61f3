"""Capability registry: procedure name to owning tool group.

Group identity and metadata are fixed here.  Membership is supplied by
the procedure catalog when the registry is built, so the registry never
has to know how a procedure is executed.
"""

from __future__ import annotations

import enum
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from toolgate.core.errors import ConfigError, UnknownGroupError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping, Sequence


class ToolGroup(enum.StrEnum):
    """The fixed set of tool groups, in catalog order."""

    FILESYSTEM = "filesystem"
    FILE_OPS = "file_ops"
    SEARCH = "search"
    TEXT = "text"
    GIT = "git"
    GITHUB = "github"
    GITLAB = "gitlab"
    KUBERNETES = "kubernetes"
    CONTAINER = "container"
    NETWORK = "network"
    SYSTEM = "system"
    ARCHIVE = "archive"
    REFERENCE = "reference"
    DIFF = "diff"
    MCP = "mcp"


_GROUP_META: dict[ToolGroup, tuple[str, str]] = {
    ToolGroup.FILESYSTEM: (
        "Filesystem",
        "List directories (eza), find files (fd), directory size (dust), file types",
    ),
    ToolGroup.FILE_OPS: (
        "File Operations",
        "Read, write, append, and patch files",
    ),
    ToolGroup.SEARCH: (
        "Search & Code Analysis",
        "Search content (ripgrep), fuzzy filtering (fzf), AST-based code search",
    ),
    ToolGroup.TEXT: (
        "Text Processing",
        "JSON (jq), YAML (yq), HTML (htmlq), CSV (xsv), find/replace (sd)",
    ),
    ToolGroup.GIT: (
        "Git Version Control",
        "Status, diff, log, add, commit, branch operations",
    ),
    ToolGroup.GITHUB: (
        "GitHub",
        "Repository, issue, PR, and workflow operations via gh CLI",
    ),
    ToolGroup.GITLAB: (
        "GitLab",
        "Issue, merge request, and pipeline operations via glab CLI",
    ),
    ToolGroup.KUBERNETES: (
        "Kubernetes & Helm",
        "kubectl get/describe/logs/apply, Helm releases",
    ),
    ToolGroup.CONTAINER: (
        "Container & Registry",
        "Podman containers and images, registry inspection (skopeo), scanning (trivy)",
    ),
    ToolGroup.NETWORK: (
        "Network & Database",
        "HTTP requests (xh), SQL queries (usql), DNS lookups",
    ),
    ToolGroup.SYSTEM: (
        "System & Shell",
        "Shell execution, process listing (procs), benchmarking (hyperfine), code stats (tokei)",
    ),
    ToolGroup.ARCHIVE: (
        "Archive & Compression",
        "Compress, decompress, and list archives (ouch)",
    ),
    ToolGroup.REFERENCE: (
        "Reference & Docs",
        "Command help (tldr), regex generation (grex)",
    ),
    ToolGroup.DIFF: (
        "Diff & Comparison",
        "Unified file diffs, structural diffs (difftastic)",
    ),
    ToolGroup.MCP: (
        "MCP State Management",
        "Task tracking, context storage, result cache, and forge auth status",
    ),
}

_ALIASES: dict[str, ToolGroup] = {
    "fs": ToolGroup.FILESYSTEM,
    "file": ToolGroup.FILE_OPS,
    "files": ToolGroup.FILE_OPS,
    "gh": ToolGroup.GITHUB,
    "gl": ToolGroup.GITLAB,
    "k8s": ToolGroup.KUBERNETES,
    "kube": ToolGroup.KUBERNETES,
    "docker": ToolGroup.CONTAINER,
    "podman": ToolGroup.CONTAINER,
    "net": ToolGroup.NETWORK,
    "http": ToolGroup.NETWORK,
    "sys": ToolGroup.SYSTEM,
    "shell": ToolGroup.SYSTEM,
    "compress": ToolGroup.ARCHIVE,
    "zip": ToolGroup.ARCHIVE,
    "ref": ToolGroup.REFERENCE,
    "docs": ToolGroup.REFERENCE,
    "state": ToolGroup.MCP,
}


def parse_group(value: str | ToolGroup) -> ToolGroup:
    """Resolve a group identifier or alias (case-insensitive).

    Raises:
        UnknownGroupError: If *value* names no group.
    """
    if isinstance(value, ToolGroup):
        return value
    key = value.strip().lower()
    try:
        return ToolGroup(key)
    except ValueError:
        pass
    try:
        return _ALIASES[key]
    except KeyError:
        raise UnknownGroupError(value) from None


@dataclass(frozen=True, slots=True)
class GroupInfo:
    """Metadata and ordered membership of one group."""

    id: ToolGroup
    title: str
    description: str
    members: tuple[str, ...]

    @property
    def size(self) -> int:
        return len(self.members)


class CapabilityRegistry:
    """Static mapping of procedure names to exactly one group.

    Read-only after construction and shared across sessions.
    """

    def __init__(self, membership: Mapping[ToolGroup, Sequence[str]]) -> None:
        self._members: dict[ToolGroup, tuple[str, ...]] = {
            group: tuple(membership.get(group, ())) for group in ToolGroup
        }
        self._owner: dict[str, ToolGroup] = {}
        for group, names in self._members.items():
            for name in names:
                self._owner.setdefault(name, group)

    @classmethod
    def from_procedures(
        cls, procedures: Iterable[tuple[str, ToolGroup]]
    ) -> CapabilityRegistry:
        """Build from ``(name, group)`` pairs, keeping catalog order."""
        membership: dict[ToolGroup, list[str]] = {}
        for name, group in procedures:
            membership.setdefault(group, []).append(name)
        return cls(membership)

    def groups(self) -> Iterator[GroupInfo]:
        """Iterate all groups in enumeration order (fresh iterator per call)."""
        for group in ToolGroup:
            title, description = _GROUP_META[group]
            yield GroupInfo(
                id=group,
                title=title,
                description=description,
                members=self._members[group],
            )

    def info(self, group: str | ToolGroup) -> GroupInfo:
        gid = parse_group(group)
        title, description = _GROUP_META[gid]
        return GroupInfo(gid, title, description, self._members[gid])

    def group_members(self, group: str | ToolGroup) -> tuple[str, ...]:
        """Ordered member names of *group*.

        Raises:
            UnknownGroupError: If *group* is not a known identifier or alias.
        """
        return self._members[parse_group(group)]

    def group_of(self, procedure: str) -> ToolGroup | None:
        return self._owner.get(procedure)

    def procedures(self) -> tuple[str, ...]:
        """Every registered procedure, grouped and in registry order."""
        return tuple(name for group in ToolGroup for name in self._members[group])

    def __contains__(self, procedure: object) -> bool:
        return procedure in self._owner

    def __len__(self) -> int:
        return sum(len(names) for names in self._members.values())

    def validate(self, known: Iterable[str] | None = None) -> None:
        """Check that every procedure belongs to exactly one group.

        Args:
            known: The full set of implemented procedure names.  When given,
                every member must be known and every known name must be a
                member of some group.

        Raises:
            ConfigError: Listing every violation found.
        """
        problems: list[str] = []
        counts = Counter(name for names in self._members.values() for name in names)
        for name, count in counts.items():
            if count > 1:
                owners = [g.value for g, names in self._members.items() if name in names]
                problems.append(f"{name} listed {count} times ({', '.join(owners)})")
        if known is not None:
            known_set = set(known)
            for name in sorted(counts.keys() - known_set):
                problems.append(f"{name} is listed but not implemented")
            for name in sorted(known_set - counts.keys()):
                problems.append(f"{name} belongs to no group")
        if problems:
            msg = "Invalid capability registry: " + "; ".join(problems)
            raise ConfigError(msg)
