"""Widget and container node variants."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from ..models import Rect, Size

if TYPE_CHECKING:
    from ..registry import CallbackHandle
    from .arena import NodeHandle
    from .overlay import Overlay

__all__ = [
    "CONTAINER_KINDS",
    "ButtonData",
    "Color",
    "ContainerData",
    "FpsData",
    "Layout",
    "LoggerData",
    "MenuData",
    "MenuItem",
    "Node",
    "NodeKind",
    "Position",
    "PositionKind",
    "TextData",
    "parse_color",
]

Color = tuple[int, int, int]

WHITE: Color = (255, 255, 255)
BLACK: Color = (0, 0, 0)


class NodeKind(Enum):
    """Discriminant of the node variant."""

    TEXT = "text"
    LOGGER = "logger"
    FPS = "fps"
    BUTTON = "button"
    MENU = "menu"
    BOX = "box"
    PANEL = "panel"


CONTAINER_KINDS = frozenset({NodeKind.BOX, NodeKind.PANEL})


class Layout(Enum):
    """How a container stacks its children."""

    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"


class PositionKind(Enum):
    """Where a root container sits on its output."""

    FIXED = "fixed"
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"
    CENTER = "center"


@dataclass(frozen=True)
class Position:
    """Placement of a root container, coordinates only used by FIXED."""

    kind: PositionKind = PositionKind.FIXED
    x: int = 0
    y: int = 0


def parse_color(value: str | tuple[int, int, int] | list[int]) -> Color:
    """Accept "#rrggbb" or an (r, g, b) triple."""
    if isinstance(value, str):
        text = value.lstrip("#")
        if len(text) != 6:  # noqa: PLR2004
            msg = f"invalid color {value!r}"
            raise ValueError(msg)
        return (int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))
    red, green, blue = (int(c) for c in value)
    for component in (red, green, blue):
        if not 0 <= component <= 255:  # noqa: PLR2004
            msg = f"invalid color {value!r}"
            raise ValueError(msg)
    return (red, green, blue)


@dataclass
class TextData:
    text: str = ""


@dataclass
class LoggerData:
    lines: deque[str] = field(default_factory=deque)


@dataclass
class FpsData:
    """Recent frame deltas of the output the widget lives on."""

    deltas: deque[float] = field(default_factory=deque)
    last_timestamp: float | None = None

    def add_frame(self, timestamp: float) -> None:
        """Record a frame presented at `timestamp` (ms)."""
        if self.last_timestamp is not None and timestamp > self.last_timestamp:
            self.deltas.append(timestamp - self.last_timestamp)
        self.last_timestamp = timestamp

    @property
    def fps(self) -> float:
        """Frames per second over the buffered deltas."""
        total = sum(self.deltas)
        if not total:
            return 0.0
        return len(self.deltas) * 1000.0 / total


@dataclass
class ButtonData:
    label: str = ""
    on_click: CallbackHandle | None = None


@dataclass
class MenuItem:
    """A menu entry: runs `callback` or opens `submenu`."""

    label: str
    callback: CallbackHandle | None = None
    submenu: NodeHandle | None = None


@dataclass
class MenuData:
    label: str = ""
    items: list[MenuItem] = field(default_factory=list)
    expanded: bool = False


@dataclass
class ContainerData:
    layout: Layout = Layout.VERTICAL
    children: list[NodeHandle] = field(default_factory=list)
    position: Position = field(default_factory=Position)
    background: bool = True
    scroll: bool = False
    scroll_offset: int = 0
    opacity: float = 1.0


Payload = TextData | LoggerData | FpsData | ButtonData | MenuData | ContainerData


@dataclass
class Node:  # pylint: disable=too-many-instance-attributes
    """One node of the overlay tree.

    `owner` is the parent container handle, the overlay for a root container,
    or None while the node is detached.
    """

    kind: NodeKind
    payload: Payload
    owner: NodeHandle | Overlay | None = None
    visible: bool = True
    color: Color = WHITE
    background_color: Color = BLACK
    alpha: float = 1.0
    size: Size | None = None
    rect: Rect | None = None
    dirty: bool = True

    @property
    def is_container(self) -> bool:
        """Tell if the node may hold children."""
        return self.kind in CONTAINER_KINDS
