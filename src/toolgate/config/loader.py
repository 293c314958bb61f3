"""Configuration loading as a stack of layers merged bottom-up.

Layers, lowest priority first:
    - ``user``: ``$XDG_CONFIG_HOME/toolgate/config.toml`` (``~/.config`` fallback)
    - ``project``: ``./toolgate.toml``
    - ``env-file``: the file named by ``$TOOLGATE_CONFIG``
    - ``explicit``: the ``path`` given to :func:`load_config`
    - ``env``: ``$TOOLGATE_PROFILE`` as ``session.profile``
    - ``overrides``: the mapping given to :func:`load_config`

Implicit files (user, project) are skipped when absent; any file that
was named explicitly must exist.  Pydantic model defaults sit beneath
every layer.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from toolgate.core.errors import ConfigError

from .schema import ToolgateConfig

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

ENV_CONFIG = "TOOLGATE_CONFIG"
ENV_PROFILE = "TOOLGATE_PROFILE"


@dataclass(frozen=True, slots=True)
class ConfigLayer:
    """One contribution to the merged config table."""

    source: str
    data: dict[str, Any]
    path: Path | None = None


def merge_tables(lower: dict[str, Any], upper: dict[str, Any]) -> dict[str, Any]:
    """Merge *upper* over *lower*; nested tables merge, anything else replaces."""
    out = dict(lower)
    for key, value in upper.items():
        below = out.get(key)
        if isinstance(below, dict) and isinstance(value, dict):
            out[key] = merge_tables(below, value)
        else:
            out[key] = value
    return out


def _parse_file(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_bytes()
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e
    try:
        return tomllib.loads(raw.decode())
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e


def _file_layer(source: str, path: Path, *, required: str | None = None) -> ConfigLayer | None:
    """Layer for *path*; a missing file is skipped unless *required* names the error."""
    if not path.is_file():
        if required is None:
            return None
        raise ConfigError(required)
    return ConfigLayer(source, _parse_file(path), path)


def config_layers(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Iterator[ConfigLayer]:
    """Yield the layers that apply right now, lowest priority first.

    Raises:
        ConfigError: A named file is missing or any file is unreadable.
    """
    xdg = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    candidates: list[tuple[str, Path, str | None]] = [
        ("user", Path(xdg) / "toolgate" / "config.toml", None),
        ("project", Path.cwd() / "toolgate.toml", None),
    ]
    if env_file := os.environ.get(ENV_CONFIG):
        candidates.append(
            ("env-file", Path(env_file), f"{ENV_CONFIG} points to non-existent file: {env_file}")
        )
    if path is not None:
        candidates.append(("explicit", Path(path), f"Config file not found: {path}"))

    for source, file, required in candidates:
        layer = _file_layer(source, file, required=required)
        if layer is not None:
            yield layer

    if profile := os.environ.get(ENV_PROFILE):
        yield ConfigLayer("env", {"session": {"profile": profile}})
    if overrides:
        yield ConfigLayer("overrides", overrides)


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> ToolgateConfig:
    """Merge every layer and validate the result.

    Raises:
        ConfigError: On a missing named file, invalid TOML, or validation failure.
    """
    merged: dict[str, Any] = {}
    sources: list[str] = []
    for layer in config_layers(path, overrides):
        merged = merge_tables(merged, layer.data)
        sources.append(f"{layer.source}={layer.path}" if layer.path else layer.source)
    logger.debug("Config layers: %s", ", ".join(sources) or "defaults only")

    try:
        return ToolgateConfig.model_validate(merged)
    except ValidationError as e:
        msg = f"Configuration validation failed ({', '.join(sources) or 'defaults'}): {e}"
        raise ConfigError(msg) from e
