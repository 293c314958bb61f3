"""Procedure catalog and dispatch."""

from toolgate.tools.base import (
    ProcedureContext,
    ProcedureDefinition,
    ProcedureSpec,
)
from toolgate.tools.registry import ProcedureRegistry, build_request, default_registry

__all__ = [
    "ProcedureContext",
    "ProcedureDefinition",
    "ProcedureRegistry",
    "ProcedureSpec",
    "build_request",
    "default_registry",
]
