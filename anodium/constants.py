"""Shared constants for anodium scripting."""

import os
from pathlib import Path

__all__ = [
    "CONFIG_FILE",
    "DEFAULT_CHAR_WIDTH",
    "DEFAULT_FPS_SAMPLES",
    "DEFAULT_LINE_HEIGHT",
    "DEFAULT_LOGGER_LINES",
    "DEFAULT_REFRESH_MHZ",
    "DEFAULT_TICK_INTERVAL_MS",
    "LOGGER_WIDGET_WIDTH",
    "SCRIPT_FILE",
    "STRICT_ERRORS",
    "WIDGET_PADDING",
]

_xdg_config_home = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
CONFIG_FILE = _xdg_config_home / "anodium" / "config.toml"
SCRIPT_FILE = _xdg_config_home / "anodium" / "config.py"

STRICT_ERRORS = bool(os.environ.get("ANODIUM_STRICT_ERRORS"))

# Host loop
DEFAULT_TICK_INTERVAL_MS = 16

# Display defaults
DEFAULT_REFRESH_MHZ = 60000

# Widget metrics (logical pixels)
DEFAULT_CHAR_WIDTH = 8
DEFAULT_LINE_HEIGHT = 16
WIDGET_PADDING = 4
LOGGER_WIDGET_WIDTH = 480

# Ring buffer sizes
DEFAULT_LOGGER_LINES = 12
DEFAULT_FPS_SAMPLES = 60
