"""In-process procedures backed by the state store (the ``mcp`` group)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from toolgate.execution.models import ExecutionRequest, OutputFormat
from toolgate.groups.registry import ToolGroup
from toolgate.state.store import CONTEXT_SCOPES
from toolgate.tools.base import (
    ProcedureSpec,
    anything,
    integer,
    schema,
    string,
)

if TYPE_CHECKING:
    from toolgate.tools.base import Handler, ProcedureContext

logger = logging.getLogger(__name__)

# Client cache keys live beside execution fingerprints ("exec:...").
_USER_CACHE_PREFIX = "user:"

_FORGE_CLIS: dict[str, str] = {"github": "gh", "gitlab": "glab"}
_FORGE_ALIASES: dict[str, str] = {"gh": "github", "glab": "gitlab", "gl": "gitlab"}

_SCOPE = string("Context scope", enum=list(CONTEXT_SCOPES), default="session")
_STATUS = string("Task status (e.g. pending, in_progress, completed)")


# ── Tasks ────────────────────────────────────────────────────────


async def task_create(ctx: ProcedureContext, params: dict[str, Any]) -> dict[str, Any]:
    task_id = await ctx.store.tasks.create(
        params.get("payload"), status=params.get("status") or "pending"
    )
    return {"id": task_id}


async def task_list(ctx: ProcedureContext, params: dict[str, Any]) -> dict[str, Any]:
    tasks = await ctx.store.tasks.list(params.get("status"))
    return {"tasks": [t.to_dict() for t in tasks], "count": len(tasks)}


async def task_update(ctx: ProcedureContext, params: dict[str, Any]) -> dict[str, Any]:
    record = await ctx.store.tasks.update(
        params["task_id"], params["status"], params.get("payload")
    )
    return record.to_dict()


async def task_delete(ctx: ProcedureContext, params: dict[str, Any]) -> dict[str, Any]:
    deleted = await ctx.store.tasks.delete(params["task_id"])
    return {"id": params["task_id"], "deleted": deleted}


# ── Context ──────────────────────────────────────────────────────


async def context_get(ctx: ProcedureContext, params: dict[str, Any]) -> dict[str, Any]:
    scope = params.get("scope") or "session"
    value = await ctx.store.context.get(params["key"], scope)
    return {"key": params["key"], "scope": scope, "value": value, "found": value is not None}


async def context_set(ctx: ProcedureContext, params: dict[str, Any]) -> dict[str, Any]:
    scope = params.get("scope") or "session"
    await ctx.store.context.set(params["key"], params.get("value"), scope)
    return {"key": params["key"], "scope": scope, "stored": True}


async def context_list(ctx: ProcedureContext, params: dict[str, Any]) -> dict[str, Any]:
    scope = params.get("scope") or "session"
    keys = sorted(await ctx.store.context.list_keys(scope))
    return {"scope": scope, "keys": keys, "count": len(keys)}


async def context_delete(ctx: ProcedureContext, params: dict[str, Any]) -> dict[str, Any]:
    scope = params.get("scope") or "session"
    deleted = await ctx.store.context.delete(params["key"], scope)
    return {"key": params["key"], "scope": scope, "deleted": deleted}


# ── Cache ────────────────────────────────────────────────────────


async def cache_get(ctx: ProcedureContext, params: dict[str, Any]) -> dict[str, Any]:
    value = await ctx.store.cache.get(_USER_CACHE_PREFIX + params["key"])
    return {"key": params["key"], "hit": value is not None, "value": value}


async def cache_set(ctx: ProcedureContext, params: dict[str, Any]) -> dict[str, Any]:
    ttl = params.get("ttl_secs") or ctx.config.cache.default_ttl
    await ctx.store.cache.put(_USER_CACHE_PREFIX + params["key"], params.get("value"), ttl)
    return {"key": params["key"], "ttl_secs": ttl, "stored": True}


# ── Auth ─────────────────────────────────────────────────────────


def _forge(name: str) -> str:
    key = name.strip().lower()
    key = _FORGE_ALIASES.get(key, key)
    if key not in _FORGE_CLIS:
        msg = f"Unknown service {name!r}; expected one of {', '.join(_FORGE_CLIS)}"
        raise ValueError(msg)
    return key


async def auth_check(ctx: ProcedureContext, params: dict[str, Any]) -> dict[str, Any]:
    """Report forge CLI auth status, reusing a memo younger than ``max_age``."""
    service = _forge(params["service"])
    max_age = params.get("max_age", 0)

    if max_age:
        record = await ctx.store.auth.get_status(service)
        if record is not None:
            age = ctx.store.clock() - record.last_checked.timestamp()
            if age < max_age:
                logger.debug("Auth status for %s reused (%.0fs old)", service, age)
                return {**record.to_dict(), "memoized": True}

    binary = _FORGE_CLIS[service]
    result = await ctx.executor.execute(
        ExecutionRequest(binary, ("auth", "status"), output_format=OutputFormat.PLAIN)
    )
    # gh and glab both report on stderr.
    output = (result.stderr_text or result.stdout_text).strip()
    record = await ctx.store.auth.set_status(
        service, result.success, {"cli": binary, "output": output}
    )
    logger.info("Auth status for %s: %s", service, record.authenticated)
    return {**record.to_dict(), "memoized": False}


def _state(name: str, description: str, parameters: dict[str, Any], handler: Handler) -> ProcedureSpec:
    return ProcedureSpec(
        name=name,
        group=ToolGroup.MCP,
        description=description,
        parameters=parameters,
        handler=handler,
    )


STATE_PROCEDURES: tuple[ProcedureSpec, ...] = (
    _state(
        "auth_check",
        "Check whether the gh/glab CLI is authenticated; reuses a memoized result younger than max_age seconds.",
        schema(
            "service",
            service=string("Forge service", enum=["github", "gitlab", "gh", "glab"]),
            max_age=integer("Reuse a stored result at most this old (seconds); 0 always checks", minimum=0),
        ),
        auth_check,
    ),
    _state(
        "task_create",
        "Create a session task. Returns its id.",
        schema(payload=anything("Task content (any JSON value)"), status=_STATUS),
        task_create,
    ),
    _state(
        "task_list",
        "List tasks in creation order, optionally filtered by status.",
        schema(status=_STATUS),
        task_list,
    ),
    _state(
        "task_update",
        "Set a task's status and optionally replace its payload.",
        schema(
            "task_id",
            "status",
            task_id=string("Task ID"),
            status=_STATUS,
            payload=anything("New task content"),
        ),
        task_update,
    ),
    _state(
        "task_delete",
        "Delete a task (no error if it does not exist).",
        schema("task_id", task_id=string("Task ID")),
        task_delete,
    ),
    _state(
        "context_get",
        "Read a context value.",
        schema("key", key=string("Key"), scope=_SCOPE),
        context_get,
    ),
    _state(
        "context_set",
        "Store a context value, replacing any previous value.",
        schema("key", "value", key=string("Key"), value=anything("Value (any JSON value)"), scope=_SCOPE),
        context_set,
    ),
    _state(
        "context_list",
        "List the keys stored in a scope.",
        schema(scope=_SCOPE),
        context_list,
    ),
    _state(
        "context_delete",
        "Delete a context key (no error if absent).",
        schema("key", key=string("Key"), scope=_SCOPE),
        context_delete,
    ),
    _state(
        "cache_get",
        "Read a value from the session cache; expired entries read as a miss.",
        schema("key", key=string("Cache key")),
        cache_get,
    ),
    _state(
        "cache_set",
        "Store a value in the session cache with a TTL.",
        schema(
            "key",
            "value",
            key=string("Cache key"),
            value=anything("Value (any JSON value)"),
            ttl_secs=integer("TTL in seconds (defaults to the configured cache TTL)", minimum=1),
        ),
        cache_set,
    ),
)
