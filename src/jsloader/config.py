"""Configuration loading with precedence resolution.

The loader configuration is read exactly once, at process entry, and passed
down explicitly as a frozen :class:`~jsloader.models.LoaderConfig`. Values
are merged from several sources:

Precedence (high to low):
    1. CLI flags (``overrides`` passed to :func:`load_config`)
    2. Environment variables (``JSLOADER_CHANNEL``, ``JSLOADER_API_KEY``,
       ``JSLOADER_CACHE_DIR``)
    3. The JSON config file (``--config``, ``JSLOADER_CONFIG``, or
       ``./jsloader.json``)
    4. Model defaults

A relative ``cache_directory`` is resolved against the directory holding
the config file, so a config file dropped next to its cache behaves the
same regardless of the server's working directory. Without a config file
the working directory is used.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from jsloader.exceptions import ConfigError
from jsloader.models import LoaderConfig

_CONFIG_FILENAME = "jsloader.json"
_CONFIG_ENV_VAR = "JSLOADER_CONFIG"

ENV_OVERRIDES: dict[str, str] = {
    "JSLOADER_CHANNEL": "channel",
    "JSLOADER_API_KEY": "api_key",
    "JSLOADER_CACHE_DIR": "cache_directory",
}
"""Environment variable name -> :class:`LoaderConfig` field."""


def find_config_file(cli_path: Optional[str | Path] = None) -> Optional[Path]:
    """Locate the JSON config file.

    An explicit path (CLI flag or ``JSLOADER_CONFIG``) must exist; the
    implicit ``./jsloader.json`` is optional.

    Raises:
        ConfigError: If an explicitly named file does not exist.
    """
    explicit = cli_path or os.environ.get(_CONFIG_ENV_VAR)
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        return path.resolve()

    local = Path.cwd() / _CONFIG_FILENAME
    if local.is_file():
        return local.resolve()
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Read and parse a JSON config file into a plain dict.

    Raises:
        ConfigError: If the file cannot be read, is not valid JSON, or does
            not contain a JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _env_values() -> dict[str, str]:
    values: dict[str, str] = {}
    for var, field_name in ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            values[field_name] = value
    return values


def load_config(
    config_path: Optional[str | Path] = None,
    **overrides: Any,
) -> LoaderConfig:
    """Build the effective :class:`LoaderConfig` from all sources.

    Args:
        config_path: Explicit config file path (the ``--config`` flag).
        **overrides: Highest-precedence values, typically CLI flags. ``None``
            values are ignored so that unset flags do not mask lower layers.

    Returns:
        A validated, frozen configuration whose ``cache_directory`` is an
        absolute path.

    Raises:
        ConfigError: If the file is unreadable or the merged values fail
            validation.
    """
    path = find_config_file(config_path)

    data: dict[str, Any] = {}
    if path is not None:
        data.update(read_config_file(path))
    data.update(_env_values())
    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = LoaderConfig.model_validate(data)
    except ValidationError as exc:
        source = f" (from {path})" if path is not None else ""
        raise ConfigError(f"Invalid configuration{source}: {exc}") from exc

    base_dir = path.parent if path is not None else Path.cwd()
    cache_dir = Path(config.cache_directory).expanduser()
    if not cache_dir.is_absolute():
        cache_dir = base_dir / cache_dir
    return config.model_copy(update={"cache_directory": str(cache_dir.resolve())})
