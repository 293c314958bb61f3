"""Session profiles: named presets of initially enabled groups."""

from __future__ import annotations

from dataclasses import dataclass

from toolgate.core.errors import UnknownProfileError
from toolgate.groups.registry import ToolGroup


@dataclass(frozen=True, slots=True)
class SessionProfile:
    name: str
    description: str
    groups: frozenset[ToolGroup]


def _profile(name: str, description: str, *groups: ToolGroup) -> SessionProfile:
    return SessionProfile(name=name, description=description, groups=frozenset(groups))


G = ToolGroup

PROFILES: dict[str, SessionProfile] = {
    p.name: p
    for p in (
        _profile(
            "explore",
            "Codebase discovery: filesystem, search, git",
            G.FILESYSTEM, G.SEARCH, G.GIT,
        ),
        _profile(
            "architect",
            "System design: filesystem, search, reference documentation",
            G.FILESYSTEM, G.SEARCH, G.REFERENCE,
        ),
        _profile(
            "review",
            "Code review: git diffs, search, file comparison",
            G.GIT, G.SEARCH, G.DIFF,
        ),
        _profile(
            "test",
            "Testing: file ops, search, shell execution",
            G.FILE_OPS, G.SEARCH, G.SYSTEM,
        ),
        _profile(
            "generator",
            "Task execution: file ops, search, git, shell (general purpose)",
            G.FILE_OPS, G.SEARCH, G.GIT, G.SYSTEM,
        ),
        _profile(
            "reflector",
            "Analysis: file reading, git history",
            G.FILE_OPS, G.GIT,
        ),
        _profile(
            "curator",
            "Playbook management: file ops, search",
            G.FILE_OPS, G.SEARCH,
        ),
        _profile(
            "docs",
            "Documentation: file ops, filesystem, search, reference",
            G.FILE_OPS, G.FILESYSTEM, G.SEARCH, G.REFERENCE,
        ),
        _profile(
            "lint",
            "Linting: search, shell execution, file editing",
            G.SEARCH, G.SYSTEM, G.FILE_OPS,
        ),
        _profile(
            "api",
            "API work: network, text processing, file ops",
            G.NETWORK, G.TEXT, G.FILE_OPS,
        ),
        _profile(
            "dev-deploy",
            "Deployment: kubernetes, containers, git, github workflows",
            G.KUBERNETES, G.CONTAINER, G.GIT, G.GITHUB, G.SYSTEM,
        ),
        _profile("full", "Full access: every tool group enabled", *ToolGroup),
    )
}

DEFAULT_PROFILE = "generator"

# Keys are compared after lowercasing and mapping "-" to "_".
_ALIASES: dict[str, str] = {
    "gen": "generator",
    "reflect": "reflector",
    "curate": "curator",
    "documentation": "docs",
    "linter": "lint",
    "dev_deploy": "dev-deploy",
    "devdeploy": "dev-deploy",
    "deploy": "dev-deploy",
    "all": "full",
}


def resolve_profile(name: str) -> SessionProfile:
    """Look up a profile by name or alias.

    Raises:
        UnknownProfileError: Listing the available profile names.
    """
    key = name.strip().lower().replace("-", "_")
    canonical = _ALIASES.get(key, key)
    profile = PROFILES.get(canonical)
    if profile is None:
        raise UnknownProfileError(name, PROFILES)
    return profile
