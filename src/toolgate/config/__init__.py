"""Configuration loading and validation."""

from toolgate.config.loader import load_config
from toolgate.config.schema import (
    CacheConfig,
    ExecutionConfig,
    LoggingConfig,
    SessionConfig,
    StateConfig,
    ToolgateConfig,
)

__all__ = [
    "CacheConfig",
    "ExecutionConfig",
    "LoggingConfig",
    "SessionConfig",
    "StateConfig",
    "ToolgateConfig",
    "load_config",
]
