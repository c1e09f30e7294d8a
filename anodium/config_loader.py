"""Configuration file loading utilities.

Loads TOML files, directories of TOML files and `include` directives, merging
everything into a single dictionary.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .constants import CONFIG_FILE
from .models import ScriptError
from .schema import SECTION

if TYPE_CHECKING:
    import logging

__all__ = ["ConfigError", "ConfigLoader", "merge"]


class ConfigError(ScriptError):
    """The configuration could not be loaded."""


def merge(merged: dict[str, Any], obj2: dict[str, Any], replace: bool = False) -> dict[str, Any]:
    """Merge the content of obj2 into merged.

    Tables are merged recursively, lists are concatenated unless `replace` is set.

    Eg:
        merge({"a": {"b": 1}}, {"a": {"c": 2}}) == {"a": {"b": 1, "c": 2}}
    """
    for key, value in obj2.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merge(merged[key], value, replace)
        elif not replace and key in merged and isinstance(merged[key], list) and isinstance(value, list):
            merged[key] += value
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Handles loading and merging configuration files."""

    def __init__(self, log: logging.Logger) -> None:
        self.log = log
        self._config: dict[str, Any] = {}

    @property
    def config(self) -> dict[str, Any]:
        """Return the loaded configuration."""
        return self._config

    def load(self, config_filename: str | Path = "") -> dict[str, Any]:
        """Load configuration from file or directory.

        A missing default configuration file yields an empty configuration,
        a missing explicit one is an error.

        Raises:
            ConfigError: If an explicit file is missing or has syntax errors.
        """
        if config_filename:
            fname = Path(os.path.expandvars(str(config_filename))).expanduser()
        elif CONFIG_FILE.exists():
            fname = CONFIG_FILE
        else:
            self.log.info("No configuration file at %s, using defaults", CONFIG_FILE)
            self._config = {SECTION: {}}
            return self._config

        self._config = self._open_config(fname)
        self._config.setdefault(SECTION, {})
        return self._config

    def _open_config(self, fname: Path) -> dict[str, Any]:
        """Load `fname` (file or directory) and its includes."""
        config = self._load_config_directory(fname) if fname.is_dir() else self._load_config_file(fname)

        for extra_config in list(config.get(SECTION, {}).pop("include", [])):
            extra_path = Path(os.path.expandvars(extra_config)).expanduser()
            if not extra_path.is_absolute():
                extra_path = (fname if fname.is_dir() else fname.parent) / extra_path
            merge(config, self._open_config(extra_path))

        return config

    def _load_config_directory(self, directory: Path) -> dict[str, Any]:
        """Load and merge all .toml files from a directory, in name order."""
        config: dict[str, Any] = {}
        for toml_file in sorted(f.name for f in directory.iterdir()):
            if not toml_file.endswith(".toml"):
                continue
            merge(config, self._load_config_file(directory / toml_file))
        return config

    def _load_config_file(self, fname: Path) -> dict[str, Any]:
        """Load a single TOML configuration file."""
        if not fname.exists():
            self.log.critical("Config file not found! Please create %s", fname)
            msg = f"Config file not found: {fname}"
            raise ConfigError(msg)
        self.log.info("Loading %s", fname)
        with fname.open("rb") as f:
            try:
                return tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                self.log.critical("Problem reading %s: %s", fname, e)
                msg = f"Invalid TOML in {fname}: {e}"
                raise ConfigError(msg) from e
