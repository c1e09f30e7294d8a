"""Script facing widget references.

Scripts never touch nodes directly: they hold these small wrappers around a
node handle. Every attribute access goes through the tree, so using a
reference to a destroyed widget raises StaleHandleError.
A detached widget no reference points to anymore is freed on the next tick.
"""

from __future__ import annotations

import weakref
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, ClassVar

from ..models import Size
from ..registry import CallbackHandle
from .nodes import (
    ButtonData,
    Color,
    ContainerData,
    FpsData,
    Layout,
    LoggerData,
    MenuData,
    Node,
    NodeKind,
    Position,
    TextData,
    parse_color,
)

if TYPE_CHECKING:
    from .arena import NodeHandle
    from .tree import WidgetTree

__all__ = [
    "ButtonWidget",
    "ContainerWidget",
    "FpsWidget",
    "LoggerWidget",
    "MenuWidget",
    "TextWidget",
    "WidgetRef",
    "wrap",
]


class WidgetRef:
    """Common attributes of every widget."""

    kind: ClassVar[NodeKind]

    def __init__(self, tree: WidgetTree, handle: NodeHandle) -> None:
        self._tree = tree
        self._handle = handle
        tree.retain(handle)
        weakref.finalize(self, tree.release, handle).atexit = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._handle!r}>"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, WidgetRef) and other._handle == self._handle and other._tree is self._tree

    def __hash__(self) -> int:
        return hash(self._handle)

    @property
    def handle(self) -> NodeHandle:
        """The node handle wrapped by this reference."""
        return self._handle

    @property
    def alive(self) -> bool:
        """False once the widget was destroyed."""
        return self._handle in self._tree

    def _node(self) -> Node:
        return self._tree.node(self._handle)

    def _touch(self) -> None:
        self._tree.mark_dirty(self._handle)

    @property
    def visible(self) -> bool:
        return self._node().visible

    @visible.setter
    def visible(self, value: bool) -> None:
        self._node().visible = bool(value)
        self._touch()

    @property
    def color(self) -> Color:
        return self._node().color

    @color.setter
    def color(self, value: str | tuple[int, int, int]) -> None:
        self._node().color = parse_color(value)

    @property
    def background_color(self) -> Color:
        return self._node().background_color

    @background_color.setter
    def background_color(self, value: str | tuple[int, int, int]) -> None:
        self._node().background_color = parse_color(value)

    @property
    def alpha(self) -> float:
        return self._node().alpha

    @alpha.setter
    def alpha(self, value: float) -> None:
        self._node().alpha = min(1.0, max(0.0, float(value)))

    @property
    def size(self) -> tuple[int, int] | None:
        """Explicit size, None when the widget sizes itself."""
        size = self._node().size
        return None if size is None else (size.width, size.height)

    @size.setter
    def size(self, value: tuple[int, int] | None) -> None:
        if value is None:
            self._node().size = None
        else:
            width, height = value
            if width < 0 or height < 0:
                msg = f"invalid size {value!r}"
                raise ValueError(msg)
            self._node().size = Size(int(width), int(height))
        self._touch()

    @property
    def rect(self) -> tuple[int, int, int, int] | None:
        """(x, y, width, height) computed by the last layout pass."""
        rect = self._node().rect
        return None if rect is None else (rect.x, rect.y, rect.width, rect.height)

    def destroy(self) -> None:
        """Detach and free the widget and everything below it."""
        self._tree.destroy(self._handle)


class TextWidget(WidgetRef):
    kind = NodeKind.TEXT

    @property
    def text(self) -> str:
        payload = self._node().payload
        assert isinstance(payload, TextData)
        return payload.text

    @text.setter
    def text(self, value: str) -> None:
        payload = self._node().payload
        assert isinstance(payload, TextData)
        payload.text = str(value)
        self._touch()


class LoggerWidget(WidgetRef):
    """A console showing the last lines logged by the compositor."""

    kind = NodeKind.LOGGER

    def _data(self) -> LoggerData:
        payload = self._node().payload
        assert isinstance(payload, LoggerData)
        return payload

    @property
    def lines(self) -> tuple[str, ...]:
        return tuple(self._data().lines)

    def push(self, line: str) -> None:
        """Append a line to this console only."""
        self._data().lines.append(str(line))

    def clear(self) -> None:
        self._data().lines.clear()


class FpsWidget(WidgetRef):
    kind = NodeKind.FPS

    @property
    def fps(self) -> float:
        """Frames per second measured on the output this widget is shown on."""
        payload = self._node().payload
        assert isinstance(payload, FpsData)
        return payload.fps


class ButtonWidget(WidgetRef):
    kind = NodeKind.BUTTON

    @property
    def label(self) -> str:
        payload = self._node().payload
        assert isinstance(payload, ButtonData)
        return payload.label

    @label.setter
    def label(self, value: str) -> None:
        payload = self._node().payload
        assert isinstance(payload, ButtonData)
        payload.label = str(value)
        self._touch()

    def on_click(self, closure: Callable[..., Any] | None, state: dict | None = None) -> CallbackHandle | None:
        """Set (or remove, with None) the callback run when the button is clicked."""
        return self._tree.set_on_click(self._handle, closure, state)


class MenuWidget(WidgetRef):
    """A collapsible list of entries, clicking the label toggles it."""

    kind = NodeKind.MENU

    def _data(self) -> MenuData:
        payload = self._node().payload
        assert isinstance(payload, MenuData)
        return payload

    @property
    def label(self) -> str:
        return self._data().label

    @label.setter
    def label(self, value: str) -> None:
        self._data().label = str(value)
        self._touch()

    @property
    def expanded(self) -> bool:
        return self._data().expanded

    @expanded.setter
    def expanded(self, value: bool) -> None:
        self._data().expanded = bool(value)
        self._touch()

    @property
    def items(self) -> list[str]:
        return [item.label for item in self._data().items]

    def add_item(self, label: str, closure: Callable[..., Any], state: dict | None = None) -> CallbackHandle:
        """Append an entry running `closure` when clicked."""
        return self._tree.add_menu_item(self._handle, str(label), closure, state)

    def add_submenu(self, label: str, submenu: MenuWidget) -> MenuWidget:
        """Append an entry opening `submenu`."""
        self._tree.add_submenu(self._handle, str(label), submenu.handle)
        return submenu


class ContainerWidget(WidgetRef):
    """Box (transparent) or panel (with backdrop) holding other widgets."""

    kind = NodeKind.PANEL

    def _data(self) -> ContainerData:
        payload = self._node().payload
        assert isinstance(payload, ContainerData)
        return payload

    def add_widget(self, widget: WidgetRef) -> WidgetRef:
        """Append `widget` as the last child and return it."""
        self._tree.add_child(self._handle, widget.handle)
        return widget

    def remove_widget(self, widget: WidgetRef) -> None:
        """Destroy a child widget."""
        if self._tree.node(widget.handle).owner != self._handle:
            msg = f"{widget!r} isn't a child of {self!r}"
            raise ValueError(msg)
        self._tree.destroy(widget.handle)

    @property
    def children(self) -> list[WidgetRef]:
        return [wrap(self._tree, h) for h in self._data().children]

    @property
    def layout(self) -> Layout:
        return self._data().layout

    @layout.setter
    def layout(self, value: Layout | str) -> None:
        self._data().layout = Layout(value)
        self._touch()

    @property
    def position(self) -> Position:
        return self._data().position

    @position.setter
    def position(self, value: Position) -> None:
        if not isinstance(value, Position):
            msg = f"expected a position, got {value!r}"
            raise TypeError(msg)
        self._data().position = value
        self._touch()

    @property
    def background(self) -> bool:
        """Draw a backdrop behind the children."""
        return self._data().background

    @background.setter
    def background(self, value: bool) -> None:
        self._data().background = bool(value)

    @property
    def scroll(self) -> bool:
        """Scroll instead of clipping the overflowing children."""
        return self._data().scroll

    @scroll.setter
    def scroll(self, value: bool) -> None:
        self._data().scroll = bool(value)
        self._touch()

    @property
    def scroll_offset(self) -> int:
        return self._data().scroll_offset

    @scroll_offset.setter
    def scroll_offset(self, value: int) -> None:
        self._data().scroll_offset = max(0, int(value))
        self._touch()

    @property
    def opacity(self) -> float:
        return self._data().opacity

    @opacity.setter
    def opacity(self, value: float) -> None:
        self._data().opacity = min(1.0, max(0.0, float(value)))


_WRAPPERS: dict[NodeKind, type[WidgetRef]] = {
    NodeKind.TEXT: TextWidget,
    NodeKind.LOGGER: LoggerWidget,
    NodeKind.FPS: FpsWidget,
    NodeKind.BUTTON: ButtonWidget,
    NodeKind.MENU: MenuWidget,
    NodeKind.BOX: ContainerWidget,
    NodeKind.PANEL: ContainerWidget,
}


def wrap(tree: WidgetTree, handle: NodeHandle) -> WidgetRef:
    """Return the reference class matching the kind of `handle`."""
    return _WRAPPERS[tree.node(handle).kind](tree, handle)
