"""Shared value types and the error taxonomy of the scripting subsystem."""

from dataclasses import dataclass
from enum import Enum, IntEnum, StrEnum

__all__ = [
    "CallbackRuntimeError",
    "ExitCode",
    "InvalidHookResult",
    "ModeDescriptor",
    "OutputState",
    "OverlayLockedError",
    "Rect",
    "ScriptError",
    "ScriptLoadError",
    "Size",
    "StaleHandleError",
    "TreeError",
    "TriggerKind",
]


class TriggerKind(StrEnum):
    """What a registered callback reacts to."""

    KEY_COMBO = "key_combo"
    OUTPUT_ATTACHED = "output_attached"
    OUTPUT_REARRANGE = "output_rearrange"
    OUTPUT_MODE_SELECT = "output_mode_select"
    TIMER = "timer"
    PROCESS_EXIT = "process_exit"
    WIDGET_CLICK = "widget_click"


class OutputState(Enum):
    """Lifecycle of an output as seen by the scripting subsystem."""

    UNKNOWN = "unknown"
    ATTACHED = "attached"
    MODE_NEGOTIATED = "mode_negotiated"
    PLACED = "placed"


@dataclass(frozen=True)
class ModeDescriptor:
    """A display mode, refresh rate in millihertz."""

    width: int
    height: int
    refresh: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}@{self.refresh / 1000:g}"


@dataclass(frozen=True)
class Size:
    """Width and height in logical pixels."""

    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class Rect:
    """An axis aligned rectangle in logical pixels."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    @property
    def right(self) -> int:
        """Return the first x coordinate past the rectangle."""
        return self.x + self.width

    @property
    def bottom(self) -> int:
        """Return the first y coordinate past the rectangle."""
        return self.y + self.height

    def contains(self, x: int, y: int) -> bool:
        """Return True if the point lies inside the rectangle."""
        return self.x <= x < self.right and self.y <= y < self.bottom


class ScriptError(Exception):
    """Base class for every error raised by the scripting subsystem."""


class ScriptLoadError(ScriptError):
    """The script could not be read, compiled or evaluated."""


class CallbackRuntimeError(ScriptError):
    """A script closure raised while being invoked."""

    def __init__(self, handle: object, error: BaseException) -> None:
        super().__init__(f"{handle} raised {error!r}")
        self.handle = handle
        self.error = error


class InvalidHookResult(ScriptError):
    """A policy hook returned something the controller can't apply."""


class StaleHandleError(ScriptError):
    """A widget handle refers to a node that was destroyed."""


class TreeError(ScriptError):
    """An operation would break the widget tree structure."""


class OverlayLockedError(TreeError):
    """Root containers can only be installed while the output is being attached."""


class ExitCode(IntEnum):
    """Exit codes of the command line tool."""

    SUCCESS = 0
    USAGE_ERROR = 1
    CONFIG_ERROR = 2
    SCRIPT_ERROR = 3
