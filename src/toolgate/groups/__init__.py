"""Tool groups, session visibility, and profiles."""

from toolgate.groups.profiles import (
    DEFAULT_PROFILE,
    PROFILES,
    SessionProfile,
    resolve_profile,
)
from toolgate.groups.registry import (
    CapabilityRegistry,
    GroupInfo,
    ToolGroup,
    parse_group,
)
from toolgate.groups.visibility import META_OPERATIONS, ReadWriteLock, VisibilityState

__all__ = [
    "DEFAULT_PROFILE",
    "META_OPERATIONS",
    "PROFILES",
    "CapabilityRegistry",
    "GroupInfo",
    "ReadWriteLock",
    "SessionProfile",
    "ToolGroup",
    "parse_group",
    "resolve_profile",
    "VisibilityState",
]
