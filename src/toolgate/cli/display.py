"""Rich rendering for the CLI: group, profile, task, and result tables."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

if TYPE_CHECKING:
    from collections.abc import Iterable

    from toolgate.groups.profiles import SessionProfile
    from toolgate.groups.registry import GroupInfo, ToolGroup
    from toolgate.state.store import TaskRecord

_SNIPPET_LEN = 60


def _snippet(value: Any, limit: int = _SNIPPET_LEN) -> str:
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    text = text.replace("\n", " ")
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


class GatewayDisplay:
    """Tables for the inspection commands.

    Accepts an optional :class:`~rich.console.Console` for dependency
    injection in tests.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def show_groups(
        self,
        groups: Iterable[GroupInfo],
        enabled: frozenset[ToolGroup],
        profile: str,
    ) -> None:
        table = Table(title=f"Tool groups (profile: {profile})")
        table.add_column("Group", style="cyan")
        table.add_column("Title")
        table.add_column("Tools", justify="right")
        table.add_column("Enabled", justify="center")
        table.add_column("Description", style="dim")
        for info in groups:
            table.add_row(
                info.id.value,
                info.title,
                str(info.size),
                "[green]yes[/green]" if info.id in enabled else "no",
                info.description,
            )
        self._console.print(table)

    def show_profiles(self, profiles: Iterable[SessionProfile], default: str) -> None:
        table = Table(title="Session profiles")
        table.add_column("Profile", style="cyan")
        table.add_column("Groups")
        table.add_column("Description", style="dim")
        for profile in profiles:
            name = f"{profile.name} [bold](default)[/bold]" if profile.name == default else profile.name
            groups = ", ".join(sorted(g.value for g in profile.groups))
            table.add_row(name, groups, profile.description)
        self._console.print(table)

    def show_tasks(self, tasks: Iterable[TaskRecord]) -> None:
        table = Table(title="Tasks")
        table.add_column("ID", style="cyan")
        table.add_column("Status")
        table.add_column("Created")
        table.add_column("Payload", style="dim")
        for task in tasks:
            table.add_row(
                task.id[:8],
                task.status,
                task.created_at.strftime("%Y-%m-%d %H:%M"),
                _snippet(task.payload),
            )
        self._console.print(table)

    def show_result(self, payload: Any) -> None:
        """Pretty-print a procedure result as highlighted JSON."""
        text = json.dumps(payload, indent=2, ensure_ascii=False, default=str)
        self._console.print(Syntax(text, "json", word_wrap=True))
