"""Visibility state: which groups are enabled for the running session.

Readers (catalog listing, ``is_visible``) run concurrently; a writer
(``enable``/``disable``) gets exclusive access and swaps in a new
frozenset, so a reader always sees a whole pre- or post-mutation set.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from toolgate.groups.registry import ToolGroup, parse_group

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from toolgate.groups.profiles import SessionProfile
    from toolgate.groups.registry import CapabilityRegistry

logger = logging.getLogger(__name__)

META_OPERATIONS: frozenset[str] = frozenset(
    {
        "list_tool_groups",
        "expand_tool_group",
        "enable_tool_group",
        "disable_tool_group",
    }
)


class ReadWriteLock:
    """Many readers or one writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class VisibilityState:
    """The set of currently enabled groups for one server process."""

    def __init__(
        self,
        registry: CapabilityRegistry,
        enabled: Iterable[ToolGroup | str] = (),
    ) -> None:
        self._registry = registry
        self._lock = ReadWriteLock()
        self._enabled: frozenset[ToolGroup] = frozenset(parse_group(g) for g in enabled)

    @classmethod
    def from_profile(
        cls,
        registry: CapabilityRegistry,
        profile: SessionProfile,
        extra_groups: Iterable[ToolGroup | str] = (),
    ) -> VisibilityState:
        """Initial state for a session: the profile's groups plus any extras."""
        extras = [parse_group(g) for g in extra_groups]
        state = cls(registry, [*profile.groups, *extras])
        logger.info(
            "Session profile %s: %d groups enabled",
            profile.name,
            len(state.enabled()),
        )
        return state

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    def enabled(self) -> frozenset[ToolGroup]:
        with self._lock.read():
            return self._enabled

    def is_enabled(self, group: ToolGroup | str) -> bool:
        gid = parse_group(group)
        with self._lock.read():
            return gid in self._enabled

    def enable(self, group: ToolGroup | str) -> bool:
        """Enable *group*. Returns True if the set changed.

        Raises:
            UnknownGroupError: If *group* is not a known identifier or alias.
        """
        gid = parse_group(group)
        with self._lock.write():
            if gid in self._enabled:
                return False
            self._enabled = self._enabled | {gid}
        logger.info("Enabled tool group %s", gid.value)
        return True

    def disable(self, group: ToolGroup | str) -> bool:
        """Disable *group*. Returns True if the set changed."""
        gid = parse_group(group)
        with self._lock.write():
            if gid not in self._enabled:
                return False
            self._enabled = self._enabled - {gid}
        logger.info("Disabled tool group %s", gid.value)
        return True

    def is_visible(self, procedure: str) -> bool:
        if procedure in META_OPERATIONS:
            return True
        group = self._registry.group_of(procedure)
        if group is None:
            return False
        with self._lock.read():
            return group in self._enabled

    def visible_procedures(self) -> list[str]:
        """Procedures in enabled groups, in registry order (meta-ops excluded)."""
        enabled = self.enabled()
        return [
            name
            for info in self._registry.groups()
            if info.id in enabled
            for name in info.members
        ]
