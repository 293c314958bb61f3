"""MCP gateway server.

Advertises the procedures of the currently enabled groups plus the four
always-visible group meta-operations, and routes calls through the
procedure registry.  Enabling or disabling a group sends
``notifications/tools/list_changed`` so clients re-fetch the catalog.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from mcp.server import NotificationOptions, Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool, ToolAnnotations

from toolgate import __version__
from toolgate.core.errors import StoreUnavailableError, ToolgateError, UnknownProcedureError
from toolgate.execution.facade import Executor
from toolgate.groups.profiles import resolve_profile
from toolgate.groups.registry import ToolGroup
from toolgate.groups.visibility import META_OPERATIONS, VisibilityState
from toolgate.state.store import StateStore
from toolgate.tools.base import ProcedureContext
from toolgate.tools.registry import default_registry

if TYPE_CHECKING:
    from collections.abc import Iterable

    from toolgate.config.schema import ToolgateConfig
    from toolgate.execution.runner import ProcessRunner
    from toolgate.tools.registry import ProcedureRegistry

logger = logging.getLogger(__name__)

_GROUP_PARAM = {
    "type": "string",
    "description": "Group id or alias: " + ", ".join(g.value for g in ToolGroup),
}


def _meta_tools() -> list[Tool]:
    group_schema = {"type": "object", "properties": {"group": _GROUP_PARAM}, "required": ["group"]}
    return [
        Tool(
            name="list_tool_groups",
            description=(
                "List every tool group with its description, size, and whether "
                "it is currently enabled."
            ),
            inputSchema={"type": "object", "properties": {}},
            annotations=ToolAnnotations(readOnlyHint=True),
        ),
        Tool(
            name="expand_tool_group",
            description="Show the tools in a group with their descriptions.",
            inputSchema=group_schema,
            annotations=ToolAnnotations(readOnlyHint=True),
        ),
        Tool(
            name="enable_tool_group",
            description="Make a group's tools available in this session.",
            inputSchema=group_schema,
            annotations=ToolAnnotations(idempotentHint=True),
        ),
        Tool(
            name="disable_tool_group",
            description="Hide a group's tools from this session.",
            inputSchema=group_schema,
            annotations=ToolAnnotations(idempotentHint=True),
        ),
    ]


def _text(payload: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, ensure_ascii=False, default=str))]


class Gateway:
    """One server process: catalog, visibility, store, and MCP handlers."""

    def __init__(
        self,
        config: ToolgateConfig,
        *,
        procedures: ProcedureRegistry | None = None,
        store: StateStore | None = None,
        runner: ProcessRunner | None = None,
        profile: str | None = None,
        extra_groups: Iterable[str] | None = None,
    ) -> None:
        self.config = config
        self.procedures = procedures or default_registry()
        self.registry = self.procedures.capabilities()
        self.profile = resolve_profile(profile or config.session.profile)
        self.visibility = VisibilityState.from_profile(
            self.registry,
            self.profile,
            config.session.extra_groups if extra_groups is None else extra_groups,
        )
        self._runner = runner
        self._store = store
        self._owns_store = False
        self._executor: Executor | None = None
        if store is not None:
            self._executor = self._make_executor(store)

        self.server = Server("toolgate", version=__version__)
        self._register_handlers()

    # ── Lifecycle ────────────────────────────────────────────────

    def _make_executor(self, store: StateStore) -> Executor:
        cache = store.cache if self.config.cache.enabled else None
        return Executor(self.config.execution, cache=cache, runner=self._runner)

    async def start(self) -> None:
        """Open the state store unless one was supplied."""
        if self._store is None:
            self._store = await StateStore.open(self.config.state.url)
            self._owns_store = True
            self._executor = self._make_executor(self._store)

    async def close(self) -> None:
        if self._store is not None and self._owns_store:
            await self._store.close()
            self._store = None
            self._executor = None
            self._owns_store = False

    def _context(self) -> ProcedureContext:
        if self._store is None or self._executor is None:
            msg = "State store is not open"
            raise StoreUnavailableError(msg)
        return ProcedureContext(executor=self._executor, store=self._store, config=self.config)

    # ── Catalog ──────────────────────────────────────────────────

    def list_tools(self) -> list[Tool]:
        """Visible procedures (registry order) followed by the meta-operations."""
        tools = []
        for name in self.visibility.visible_procedures():
            spec = self.procedures.get(name)
            tools.append(
                Tool(
                    name=spec.name,
                    description=spec.description,
                    inputSchema=spec.parameters,
                    annotations=ToolAnnotations(readOnlyHint=spec.read_only),
                )
            )
        tools.extend(_meta_tools())
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        """Dispatch one call.

        Raises:
            UnknownProcedureError: Unknown name, or its group is not enabled.
            ToolgateError: Anything raised by the procedure itself.
        """
        arguments = arguments or {}
        if name in META_OPERATIONS:
            return _text(await self._meta(name, arguments))
        if name not in self.procedures:
            raise UnknownProcedureError(name)
        if not self.visibility.is_visible(name):
            group = self.registry.group_of(name)
            raise UnknownProcedureError(
                name, f"not enabled (call enable_tool_group with group '{group}')"
            )
        payload = await self.procedures.invoke(name, arguments, self._context())
        return _text(payload)

    # ── Meta-operations ──────────────────────────────────────────

    async def _meta(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        if name == "list_tool_groups":
            return self._list_groups()
        group = arguments.get("group", "")
        if name == "expand_tool_group":
            return self._expand_group(group)
        if name == "enable_tool_group":
            changed = self.visibility.enable(group)
        else:
            changed = self.visibility.disable(group)
        info = self.registry.info(group)
        if changed:
            await self._notify_tools_changed()
        return {
            "group": info.id.value,
            "enabled": self.visibility.is_enabled(info.id),
            "changed": changed,
            "tools": list(info.members),
            "visible_tool_count": len(self.visibility.visible_procedures()),
        }

    def _list_groups(self) -> dict[str, Any]:
        enabled = self.visibility.enabled()
        return {
            "profile": self.profile.name,
            "groups": [
                {
                    "id": info.id.value,
                    "title": info.title,
                    "description": info.description,
                    "tool_count": info.size,
                    "enabled": info.id in enabled,
                }
                for info in self.registry.groups()
            ],
        }

    def _expand_group(self, group: str) -> dict[str, Any]:
        info = self.registry.info(group)
        return {
            "id": info.id.value,
            "title": info.title,
            "description": info.description,
            "enabled": self.visibility.is_enabled(info.id),
            "tools": [
                {"name": d.name, "description": d.description}
                for d in self.procedures.list_definitions(info.members)
            ],
        }

    async def _notify_tools_changed(self) -> None:
        try:
            ctx = self.server.request_context
        except LookupError:
            logger.debug("No active request; tools/list_changed not sent")
            return
        await ctx.session.send_tool_list_changed()

    # ── MCP wiring ───────────────────────────────────────────────

    def _register_handlers(self) -> None:
        """Register MCP protocol handlers."""

        @self.server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
        async def list_tools() -> list[Tool]:
            return self.list_tools()

        @self.server.call_tool()  # type: ignore[untyped-decorator]
        async def call_tool(name: str, arguments: dict) -> list[TextContent]:  # type: ignore[type-arg]
            start = time.monotonic()
            try:
                result = await self.call_tool(name, arguments)
            except (ToolgateError, ValueError) as exc:
                # The SDK turns the exception into an isError result.
                logger.warning("call_tool %s failed: %s", name, exc)
                raise
            logger.info("call_tool %s done in %.0fms", name, (time.monotonic() - start) * 1000)
            return result

    async def run_stdio(self) -> None:
        """Serve over stdio until the client disconnects."""
        await self.start()
        logger.info(
            "Starting toolgate %s (profile=%s, %d tools visible)",
            __version__,
            self.profile.name,
            len(self.visibility.visible_procedures()),
        )
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(
                        notification_options=NotificationOptions(tools_changed=True)
                    ),
                )
        finally:
            await self.close()
