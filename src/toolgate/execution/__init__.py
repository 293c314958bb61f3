"""Command execution engine: runner, normalizer, and facade."""

from toolgate.execution.facade import Executor, fingerprint, validate_request
from toolgate.execution.models import (
    ExecutionRequest,
    ExecutionResult,
    NormalizedOutput,
    OutputFormat,
)
from toolgate.execution.normalize import normalize
from toolgate.execution.runner import ProcessRunner, RawOutput

__all__ = [
    "ExecutionRequest",
    "ExecutionResult",
    "Executor",
    "NormalizedOutput",
    "OutputFormat",
    "ProcessRunner",
    "RawOutput",
    "fingerprint",
    "normalize",
    "validate_request",
]
