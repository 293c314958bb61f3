"""Pydantic models for toolgate configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class ExecutionConfig(BaseModel):
    """Subprocess execution defaults."""

    default_timeout: float = 60.0
    max_output_bytes: int | None = None
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("default_timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            msg = "default_timeout must be positive"
            raise ValueError(msg)
        return v


class StateConfig(BaseModel):
    """Embedded state store location."""

    url: str = "sqlite+aiosqlite:///~/.local/share/toolgate/state.db"


class CacheConfig(BaseModel):
    """Result cache settings."""

    enabled: bool = True
    default_ttl: int = 300


class SessionConfig(BaseModel):
    """Initial tool visibility for a session."""

    profile: str = "generator"
    extra_groups: list[str] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class ToolgateConfig(BaseModel):
    """Top-level configuration for toolgate."""

    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
