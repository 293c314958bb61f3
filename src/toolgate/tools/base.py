"""Procedure types and the declarative argument/schema helpers.

A procedure is either a *command* (binary + argument rule + output hint,
run through the execution facade) or an in-process *handler* working on
the state store.  Command argument lists are described with
:func:`argv` and the :class:`Flag`/:class:`Opt`/:class:`Pos` parts
instead of hand-written builder functions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from toolgate.execution.models import OutputFormat

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from toolgate.config.schema import ToolgateConfig
    from toolgate.execution.facade import Executor
    from toolgate.groups.registry import ToolGroup
    from toolgate.state.store import StateStore

    ArgBuilder = Callable[[Mapping[str, Any]], list[str]]
    Handler = Callable[["ProcedureContext", dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class ProcedureDefinition:
    """Schema definition for a procedure, as advertised to clients."""

    name: str
    description: str
    parameters_schema: dict[str, Any]


@dataclass(frozen=True, slots=True)
class ProcedureSpec:
    """One catalog entry."""

    name: str
    group: ToolGroup
    description: str
    parameters: dict[str, Any]
    binary: str | None = None
    build_args: ArgBuilder | None = None
    output_format: OutputFormat = OutputFormat.AUTO
    stdin_param: str | None = None
    cwd_param: str | None = None
    cache_ttl: int | None = None
    timeout: float | None = None
    handler: Handler | None = None
    read_only: bool = False

    def __post_init__(self) -> None:
        if (self.binary is None) == (self.handler is None):
            msg = f"Procedure {self.name} needs exactly one of binary or handler"
            raise ValueError(msg)

    @property
    def definition(self) -> ProcedureDefinition:
        return ProcedureDefinition(self.name, self.description, self.parameters)


@dataclass(slots=True)
class ProcedureContext:
    """What a handler may touch while serving one call."""

    executor: Executor
    store: StateStore
    config: ToolgateConfig
    extra: dict[str, Any] = field(default_factory=dict)


# ── Argument parts ───────────────────────────────────────────────


def _present(value: Any) -> bool:
    return value is not None and value != "" and value != []


@dataclass(frozen=True, slots=True)
class Flag:
    """Emit *flag* when the boolean parameter is true."""

    param: str
    flag: str

    def render(self, params: Mapping[str, Any]) -> list[str]:
        return [self.flag] if params.get(self.param) else []


@dataclass(frozen=True, slots=True)
class Opt:
    """Emit ``flag value`` (or ``flag=value`` when *joined*) when set."""

    param: str
    flag: str
    joined: bool = False
    default: Any = None

    def render(self, params: Mapping[str, Any]) -> list[str]:
        value = params.get(self.param, self.default)
        if not _present(value):
            return []
        if isinstance(value, bool):
            value = str(value).lower()
        if self.joined:
            return [f"{self.flag}={value}"]
        return [self.flag, str(value)]


@dataclass(frozen=True, slots=True)
class Pos:
    """Emit the parameter as positional argument(s); lists are expanded."""

    param: str
    default: Any = None

    def render(self, params: Mapping[str, Any]) -> list[str]:
        value = params.get(self.param, self.default)
        if not _present(value):
            return []
        if isinstance(value, list | tuple):
            return [str(v) for v in value]
        return [str(value)]


def argv(*parts: str | Flag | Opt | Pos) -> ArgBuilder:
    """Compose literal strings and parameter parts into an argument builder."""

    def build(params: Mapping[str, Any]) -> list[str]:
        args: list[str] = []
        for part in parts:
            if isinstance(part, str):
                args.append(part)
            else:
                args.extend(part.render(params))
        return args

    return build


# ── Schema helpers ───────────────────────────────────────────────


def string(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def integer(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "integer", "description": description, **extra}


def boolean(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "boolean", "description": description, **extra}


def strings(description: str) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}


def anything(description: str) -> dict[str, Any]:
    return {"description": description}


def schema(*required: str, **properties: dict[str, Any]) -> dict[str, Any]:
    """JSON schema object with *properties*; positional names are required."""
    missing = [name for name in required if name not in properties]
    if missing:
        msg = f"Required parameters without a property: {', '.join(missing)}"
        raise ValueError(msg)
    out: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        out["required"] = list(required)
    return out
