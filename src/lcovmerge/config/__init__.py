"""
lcovmerge.config - Configuration loading and defaults

Configuration comes from three layers, later ones winning:

1. DEFAULT_CONFIG
2. A ``.lcovmerge.toml`` file (found by walking up from the working
   directory, or given explicitly), then an optional
   ``.lcovmerge.local.toml`` beside it for uncommitted overrides
3. ``LCOVMERGE_<SECTION>_<KEY>`` environment variables

Command-line flags are applied on top by the CLI.
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import ParseError as TOMLParseError

CONFIG_FILE_NAME = ".lcovmerge.toml"
LOCAL_CONFIG_FILE_NAME = ".lcovmerge.local.toml"
ENV_PREFIX = "LCOVMERGE_"

DEFAULT_CONFIG: dict[str, Any] = {
    "merge": {
        "discard_checksums": False,
        "generate_checksums": False,
    },
    "output": {
        "file": None,
    },
}


class ConfigLoader:
    """Read-only view over a merged configuration dictionary."""

    def __init__(self, data: dict[str, Any], path: Path | None = None):
        self._data = data
        self.path = path

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConfigLoader:
        return cls(copy.deepcopy(data))

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``merge.discard_checksums``."""
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def section(self, name: str) -> dict[str, Any]:
        value = self._data.get(name)
        return dict(value) if isinstance(value, dict) else {}

    def get_raw(self) -> dict[str, Any]:
        return self._data


def parse_toml(content: str) -> dict[str, Any]:
    """Parse TOML text into plain Python containers."""
    return parse_toml_document(content).unwrap()


def parse_toml_document(content: str) -> tomlkit.TOMLDocument:
    """Parse TOML text keeping formatting, for round-trip edits."""
    return tomlkit.parse(content)


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` into a copy of ``base``."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def find_git_root(start: Path | None = None) -> Path | None:
    """Return the nearest directory at or above ``start`` containing ``.git``."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        if (directory / ".git").exists():
            return directory
    return None


def find_config_file(start: Path | None = None) -> Path | None:
    """Find ``.lcovmerge.toml`` walking up from ``start``.

    The search stops at the git root when there is one, so a config file
    in an unrelated parent directory is never picked up.
    """
    current = (start or Path.cwd()).resolve()
    stop = find_git_root(current)
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
        if stop is not None and directory == stop:
            break
    return None


def _try_parse_env_value(value: str) -> Any:
    """Interpret an environment value as bool, JSON list/object or string."""
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if value.startswith(("[", "{")):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply ``LCOVMERGE_<SECTION>_<KEY>`` variables onto ``config``."""
    for name, raw in os.environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        section, sep, key = name[len(ENV_PREFIX) :].lower().partition("_")
        if not sep or not section or not key:
            continue
        config.setdefault(section, {})
        if isinstance(config[section], dict):
            config[section][key] = _try_parse_env_value(raw)
    return config


def load_config(path: Path | None = None, start: Path | None = None) -> ConfigLoader:
    """Load configuration from ``path``, or discover it from ``start``.

    Args:
        path: Explicit config file; must exist when given
        start: Directory to begin discovery from (default: cwd)

    Returns:
        ConfigLoader over defaults + file + environment overrides

    Raises:
        FileNotFoundError: If ``path`` is given but does not exist
        ValueError: If the file is not valid TOML
    """
    if path is not None and not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    config_path = path or find_config_file(start)

    data = copy.deepcopy(DEFAULT_CONFIG)
    if config_path is not None:
        try:
            file_data = parse_toml(config_path.read_text(encoding="utf-8"))
        except TOMLParseError as e:
            raise ValueError(f"{config_path}: {e}") from e
        data = merge_configs(data, file_data)

        local_path = config_path.parent / LOCAL_CONFIG_FILE_NAME
        if local_path.is_file():
            try:
                local_data = parse_toml(local_path.read_text(encoding="utf-8"))
            except TOMLParseError as e:
                raise ValueError(f"{local_path}: {e}") from e
            data = merge_configs(data, local_data)

    return ConfigLoader(_apply_env_overrides(data), path=config_path)


__all__ = [
    "CONFIG_FILE_NAME",
    "DEFAULT_CONFIG",
    "LOCAL_CONFIG_FILE_NAME",
    "ConfigLoader",
    "find_config_file",
    "find_git_root",
    "load_config",
    "merge_configs",
    "parse_toml",
    "parse_toml_document",
]
