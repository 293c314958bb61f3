"""Procedure registry: registration, lookup, and the one dispatch path.

Command procedures become an :class:`ExecutionRequest` and go through
the execution facade; handler procedures run in-process.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from toolgate.core.errors import UnknownProcedureError
from toolgate.execution.models import ExecutionRequest
from toolgate.groups.registry import CapabilityRegistry

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from toolgate.tools.base import ProcedureContext, ProcedureDefinition, ProcedureSpec

logger = logging.getLogger(__name__)


def build_request(spec: ProcedureSpec, arguments: dict[str, Any]) -> ExecutionRequest:
    """Turn validated call arguments into an execution request."""
    if spec.binary is None or spec.build_args is None:
        msg = f"Procedure {spec.name} is not a command procedure"
        raise ValueError(msg)
    stdin = arguments.get(spec.stdin_param) if spec.stdin_param else None
    cwd = arguments.get(spec.cwd_param) if spec.cwd_param else None
    return ExecutionRequest(
        tool=spec.binary,
        args=tuple(spec.build_args(arguments)),
        stdin=stdin,
        timeout=spec.timeout,
        cwd=cwd or None,
        output_format=spec.output_format,
    )


class ProcedureRegistry:
    """Registry of catalog procedures, in registration order."""

    def __init__(self, procedures: Iterable[ProcedureSpec] = ()) -> None:
        self._procedures: dict[str, ProcedureSpec] = {}
        for spec in procedures:
            self.register(spec)

    def register(self, spec: ProcedureSpec) -> None:
        """Register a procedure.

        Raises:
            ValueError: If a procedure with the same name is already registered.
        """
        if spec.name in self._procedures:
            msg = f"Procedure already registered: {spec.name}"
            raise ValueError(msg)
        self._procedures[spec.name] = spec

    def get(self, name: str) -> ProcedureSpec:
        """Get a procedure by name.

        Raises:
            UnknownProcedureError: If the procedure is not registered.
        """
        try:
            return self._procedures[name]
        except KeyError:
            raise UnknownProcedureError(name) from None

    def list_definitions(self, names: Iterable[str] | None = None) -> list[ProcedureDefinition]:
        """Definitions for *names* (default: every procedure), in the given order."""
        if names is None:
            return [spec.definition for spec in self._procedures.values()]
        return [self.get(name).definition for name in names]

    def capabilities(self) -> CapabilityRegistry:
        """Group membership derived from each procedure's owning group."""
        registry = CapabilityRegistry.from_procedures(
            (spec.name, spec.group) for spec in self._procedures.values()
        )
        registry.validate(self._procedures)
        return registry

    async def invoke(
        self,
        name: str,
        arguments: dict[str, Any],
        context: ProcedureContext,
    ) -> Any:
        """Run procedure *name* and return its JSON-safe result.

        Raises:
            UnknownProcedureError: If *name* is not registered.
            ToolgateError: Whatever the facade or the store raised.
        """
        spec = self.get(name)
        if spec.handler is not None:
            return await spec.handler(context, arguments)

        request = build_request(spec, arguments)
        ttl = spec.cache_ttl if context.config.cache.enabled else None
        logger.debug("Invoking %s -> %s %s", name, request.tool, " ".join(request.args))
        result = await context.executor.execute(request, cache_ttl=ttl)
        return result.to_dict()

    def __iter__(self) -> Iterator[ProcedureSpec]:
        return iter(self._procedures.values())

    def __len__(self) -> int:
        return len(self._procedures)

    def __contains__(self, name: object) -> bool:
        return name in self._procedures

    def list_names(self) -> list[str]:
        """Return names of all registered procedures."""
        return list(self._procedures.keys())


def default_registry() -> ProcedureRegistry:
    """The full catalog: command procedures plus state procedures."""
    from toolgate.tools.catalog import COMMANDS
    from toolgate.tools.state_ops import STATE_PROCEDURES

    return ProcedureRegistry([*COMMANDS, *STATE_PROCEDURES])
