"""Configuration schema of the `[anodium]` section."""

from .constants import (
    DEFAULT_CHAR_WIDTH,
    DEFAULT_FPS_SAMPLES,
    DEFAULT_LINE_HEIGHT,
    DEFAULT_LOGGER_LINES,
    DEFAULT_REFRESH_MHZ,
    DEFAULT_TICK_INTERVAL_MS,
    SCRIPT_FILE,
)
from .validation import ConfigField, ConfigItems

__all__ = ["ANODIUM_CONFIG_SCHEMA", "OUTPUT_SCHEMA", "SECTION"]

SECTION = "anodium"


def _positive(value: int | float) -> list[str]:
    if value <= 0:
        return [f"must be positive, got {value}"]
    return []


OUTPUT_SCHEMA = ConfigItems(
    ConfigField("name", str, required=True, description="Output connector name"),
    ConfigField("width", int, required=True, validator=_positive, description="Width in pixels"),
    ConfigField("height", int, required=True, validator=_positive, description="Height in pixels"),
    ConfigField("refresh", int, default=DEFAULT_REFRESH_MHZ, validator=_positive, description="Refresh rate in mHz"),
    ConfigField("scale", float, default=1.0, validator=_positive, description="Output scale"),
)

ANODIUM_CONFIG_SCHEMA = ConfigItems(
    ConfigField("script", str, default=str(SCRIPT_FILE), description="Script evaluated at startup"),
    ConfigField("include", list, description="Extra configuration files merged in order"),
    ConfigField("strict_errors", bool, default=False, description="Re-raise errors from script callbacks"),
    ConfigField(
        "tick_interval_ms", int, default=DEFAULT_TICK_INTERVAL_MS, validator=_positive, description="Delay between two host ticks"
    ),
    ConfigField("logger_lines", int, default=DEFAULT_LOGGER_LINES, validator=_positive, description="Lines kept by log widgets"),
    ConfigField("fps_samples", int, default=DEFAULT_FPS_SAMPLES, validator=_positive, description="Frame deltas kept by FPS widgets"),
    ConfigField("char_width", int, default=DEFAULT_CHAR_WIDTH, validator=_positive, description="Glyph advance used for text sizing"),
    ConfigField("line_height", int, default=DEFAULT_LINE_HEIGHT, validator=_positive, description="Line height used for text sizing"),
    ConfigField("outputs", list, items=OUTPUT_SCHEMA, description="Virtual outputs of the headless host"),
)
