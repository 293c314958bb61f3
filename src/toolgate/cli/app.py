"""Main CLI application.

Click commands for toolgate: serve, groups, profiles, run, tasks,
cache purge.
"""

from __future__ import annotations

import asyncio
import json as json_mod
import sys
from typing import TYPE_CHECKING, Any

import click

from toolgate import __version__
from toolgate.config.loader import load_config
from toolgate.core.errors import ConfigError, ToolgateError

if TYPE_CHECKING:
    from toolgate.cli.display import GatewayDisplay
    from toolgate.config.schema import ToolgateConfig


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> ToolgateConfig:
    """Load config with user-friendly error handling."""
    try:
        return load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy


def _display() -> GatewayDisplay:
    from toolgate.cli.display import GatewayDisplay

    return GatewayDisplay()


def _parse_params(pairs: tuple[str, ...]) -> dict[str, Any]:
    """Parse ``key=value`` pairs; values that are valid JSON are decoded."""
    params: dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            msg = f"Expected key=value, got {pair!r}"
            raise click.BadParameter(msg, param_hint="--param")
        try:
            params[key] = json_mod.loads(raw)
        except json_mod.JSONDecodeError:
            params[key] = raw
    return params


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="toolgate")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """toolgate - CLI tools as MCP procedures.

    Serves a catalog of command-line tools to MCP clients, grouped so
    agents only see what their session profile enables.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── serve ────────────────────────────────────────────────────────


@cli.command()
@click.option("--profile", default=None, help="Session profile (default from config).")
@click.option(
    "--group",
    "groups",
    multiple=True,
    help="Extra group to enable on top of the profile (repeatable).",
)
@click.pass_context
def serve(ctx: click.Context, profile: str | None, groups: tuple[str, ...]) -> None:
    """Start the MCP server on stdio."""
    from toolgate.core.logging import configure_logging
    from toolgate.mcp.server import Gateway

    config = _load_config(ctx.obj["config_path"])
    configure_logging(config.logging)
    extra = [*config.session.extra_groups, *groups]
    try:
        gateway = Gateway(config, profile=profile, extra_groups=extra)
        asyncio.run(gateway.run_stdio())
    except ToolgateError as e:
        _error(str(e))


# ── groups ───────────────────────────────────────────────────────


@cli.command()
@click.option("--profile", default=None, help="Show enablement for this profile.")
@click.pass_context
def groups(ctx: click.Context, profile: str | None) -> None:
    """List tool groups and which ones a profile enables."""
    from toolgate.groups.profiles import resolve_profile
    from toolgate.tools.registry import default_registry

    config = _load_config(ctx.obj["config_path"])
    try:
        resolved = resolve_profile(profile or config.session.profile)
        registry = default_registry().capabilities()
    except ToolgateError as e:
        _error(str(e))
        return
    _display().show_groups(registry.groups(), resolved.groups, resolved.name)


# ── profiles ─────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def profiles(ctx: click.Context) -> None:
    """List session profiles."""
    from toolgate.groups.profiles import PROFILES

    config = _load_config(ctx.obj["config_path"])
    _display().show_profiles(PROFILES.values(), config.session.profile)


# ── run ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("procedure")
@click.option(
    "--param",
    "-p",
    "params",
    multiple=True,
    help="Procedure argument as key=value (JSON values are decoded).",
)
@click.option("--raw", is_flag=True, default=False, help="Print compact JSON.")
@click.pass_context
def run(ctx: click.Context, procedure: str, params: tuple[str, ...], raw: bool) -> None:
    """Invoke one procedure directly, regardless of visibility."""
    config = _load_config(ctx.obj["config_path"])
    arguments = _parse_params(params)
    try:
        payload = asyncio.run(_run_async(config, procedure, arguments))
    except (ToolgateError, ValueError) as e:
        _error(str(e))
        return
    if raw:
        click.echo(json_mod.dumps(payload, ensure_ascii=False, default=str))
    else:
        _display().show_result(payload)


async def _run_async(config: ToolgateConfig, procedure: str, arguments: dict[str, Any]) -> Any:
    """Async implementation for the run command."""
    from toolgate.execution.facade import Executor
    from toolgate.state.store import StateStore
    from toolgate.tools.base import ProcedureContext
    from toolgate.tools.registry import default_registry

    registry = default_registry()
    spec = registry.get(procedure)
    missing = [name for name in spec.parameters.get("required", []) if name not in arguments]
    if missing:
        msg = f"Missing required parameter(s) for {procedure}: {', '.join(missing)}"
        raise ValueError(msg)

    store = await StateStore.open(config.state.url)
    try:
        executor = Executor(
            config.execution, cache=store.cache if config.cache.enabled else None
        )
        context = ProcedureContext(executor=executor, store=store, config=config)
        return await registry.invoke(procedure, arguments, context)
    finally:
        await store.close()


# ── tasks ────────────────────────────────────────────────────────


@cli.command()
@click.option("--status", default=None, help="Filter by status.")
@click.pass_context
def tasks(ctx: click.Context, status: str | None) -> None:
    """List session tasks."""
    config = _load_config(ctx.obj["config_path"])
    try:
        records = asyncio.run(_tasks_async(config, status))
    except ToolgateError as e:
        _error(str(e))
        return
    if not records:
        click.echo("No tasks found.")
        return
    _display().show_tasks(records)


async def _tasks_async(config: ToolgateConfig, status: str | None) -> list[Any]:
    from toolgate.state.store import StateStore

    store = await StateStore.open(config.state.url)
    try:
        return list(await store.tasks.list(status))
    finally:
        await store.close()


# ── cache ────────────────────────────────────────────────────────


@cli.group()
def cache() -> None:
    """Result cache maintenance."""


@cache.command()
@click.pass_context
def purge(ctx: click.Context) -> None:
    """Delete expired cache entries."""
    config = _load_config(ctx.obj["config_path"])
    try:
        removed = asyncio.run(_purge_async(config))
    except ToolgateError as e:
        _error(str(e))
        return
    click.echo(f"Purged {removed} expired cache entr{'y' if removed == 1 else 'ies'}.")


async def _purge_async(config: ToolgateConfig) -> int:
    from toolgate.state.store import StateStore

    store = await StateStore.open(config.state.url)
    try:
        return await store.cache.purge_expired()
    finally:
        await store.close()
