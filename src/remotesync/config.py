"""Locating and loading ``remote_sync`` configuration files."""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from . import CONFIG_BASENAME
from .errors import ConfigError
from .models import SyncConfig

logger = logging.getLogger("remotesync.config")

CONFIG_SUFFIXES = (".toml", ".json", ".yaml", ".yml")


def find_config(game_dir: Path) -> Optional[Path]:
    """First existing ``remote_sync.{toml,json,yaml,yml}`` in ``game_dir``."""
    for suffix in CONFIG_SUFFIXES:
        candidate = game_dir / f"{CONFIG_BASENAME}{suffix}"
        if candidate.is_file():
            return candidate
    return None


def load_config(game_dir: Path) -> SyncConfig:
    """Load the config for ``game_dir``, or defaults when there is none.

    Raises:
        ConfigError: The file exists but cannot be parsed or validated.
    """
    path = find_config(game_dir)
    if path is None:
        logger.warning(
            "None of %s exists. All configurable values will use their default values instead.",
            ", ".join(f"{CONFIG_BASENAME}{suffix}" for suffix in CONFIG_SUFFIXES),
        )
        return SyncConfig()
    logger.info("RemoteSync config %s is considered as the config to be read.", path.name)
    return load_config_file(path)


def load_config_file(path: Path) -> SyncConfig:
    """Parse one config file, choosing the format by suffix.

    Raises:
        ConfigError: Unreadable, unparseable or invalid content.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc

    data: Any
    try:
        if path.suffix == ".toml":
            data = tomllib.loads(text)
        elif path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to parse config file {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must hold a table/object: {path}")
    try:
        return SyncConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Config validation failed for {path}: {exc}") from exc
