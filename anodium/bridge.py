"""The namespace a script sees.

Every member is a thin facade over the engine components; none of them
decides anything on its own. Scripts only ever receive handles and widget
references from here, never the components themselves.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Any

from .keys import KeyCombo
from .logging_setup import RECORD_ATTRIBUTES
from .models import ModeDescriptor, TriggerKind
from .registry import CallbackHandle, Trigger
from .widgets.nodes import Layout, NodeKind, Position, PositionKind
from .widgets.proxies import (
    ButtonWidget,
    ContainerWidget,
    FpsWidget,
    LoggerWidget,
    MenuWidget,
    TextWidget,
    WidgetRef,
    wrap,
)

if TYPE_CHECKING:
    from .engine import ScriptEngine
    from .outputs import OutputHandle

__all__ = ["Bridge"]

State = dict[str, Any] | None


class KeyboardCallbacks:
    def __init__(self, engine: ScriptEngine) -> None:
        self._engine = engine

    def add(self, modifiers: str | Iterable[str] | None, keys: str | Iterable[str], closure: Callable[..., Any], state: State = None) -> CallbackHandle:
        """Run `closure` when `keys` are pressed, in order, while holding `modifiers`.

        Args:
            modifiers: "Super", "Super+Shift", ["Ctrl", "Alt"] or None
            keys: a keysym name or a list of them for a key sequence
            closure: called with no argument
            state: initial explicit state, passed as `state=`
        """
        combo = KeyCombo.parse(modifiers, keys)
        return self._engine.registry.register(Trigger(TriggerKind.KEY_COMBO, combo), closure, state)

    def remove(self, handle: CallbackHandle) -> bool:
        return self._engine.registry.unregister(handle)


class Keyboard:
    def __init__(self, engine: ScriptEngine) -> None:
        self.callbacks = KeyboardCallbacks(engine)


class System:
    """Processes, timers and script reloading."""

    def __init__(self, engine: ScriptEngine) -> None:
        self._engine = engine

    def exec(self, command: str) -> bool:
        """Start `command` through the shell, without waiting for it."""
        return self._engine.launcher.exec(str(command))

    def exec_read(self, command: str, on_complete: Callable[..., Any], state: State = None) -> CallbackHandle:
        """Start `command` and call `on_complete({"status": bool, "output": str})` on a later tick."""
        handle = self._engine.registry.register(Trigger(TriggerKind.PROCESS_EXIT, str(command)), on_complete, state)
        self._engine.launcher.exec_read(str(command), handle)
        return handle

    def add_timeout(self, period_ms: int | Callable[..., Any], closure: Callable[..., Any] | int, state: State = None) -> CallbackHandle:
        """Call `closure` every `period_ms` milliseconds as long as it returns true.

        `add_timeout(closure, period_ms)` is accepted too.
        """
        if callable(period_ms) and not callable(closure):
            period_ms, closure = closure, period_ms
        if not callable(closure) or isinstance(period_ms, bool) or not isinstance(period_ms, int | float):
            msg = f"add_timeout expects (period_ms, closure), got ({period_ms!r}, {closure!r})"
            raise TypeError(msg)
        return self._engine.scheduler.add_timeout(int(period_ms), closure, state)

    def cancel_timeout(self, handle: CallbackHandle) -> bool:
        return self._engine.scheduler.cancel(handle)

    def reload(self) -> None:
        """Reload the script once the current callback returned."""
        self._engine.request_reload()


class Outputs:
    """The attached outputs, by position or by name, plus the output hooks."""

    def __init__(self, engine: ScriptEngine) -> None:
        self._engine = engine

    def __len__(self) -> int:
        return len(self._engine.outputs)

    def __iter__(self) -> Iterator[OutputHandle]:
        return iter(self._engine.outputs)

    def __getitem__(self, key: int | str) -> OutputHandle:
        controller = self._engine.outputs
        if isinstance(key, str):
            output = controller.find_by_name(key)
            if output is None:
                raise KeyError(key)
            return output
        output = controller.find_by_index(key)
        if output is None:
            msg = f"no output #{key}"
            raise IndexError(msg)
        return output

    def __contains__(self, name: object) -> bool:
        return name in self._engine.outputs

    @property
    def width(self) -> int:
        """Sum of the output widths."""
        return self._engine.outputs.width

    def height_at(self, x: int) -> int | None:
        """Height of the output spanning the global column `x`."""
        return self._engine.outputs.height_at(x)

    def find(self, name: str) -> OutputHandle | None:
        return self._engine.outputs.find_by_name(name)

    def find_by_position(self, x: int, y: int) -> OutputHandle | None:
        return self._engine.outputs.find_by_position(x, y)

    def on_new(self, closure: Callable[..., Any], state: State = None) -> CallbackHandle:
        """Call `closure(output)` for every attached output, widgets may be added meanwhile."""
        return self._engine.registry.register(Trigger(TriggerKind.OUTPUT_ATTACHED), closure, state)

    def on_rearrange(self, closure: Callable[..., Any], state: State = None) -> CallbackHandle:
        """Replace the placement policy: `closure(outputs)` returns one (x, y) per output."""
        return self._engine.registry.register(Trigger(TriggerKind.OUTPUT_REARRANGE), closure, state)

    def on_mode_select(self, closure: Callable[..., Any], state: State = None) -> CallbackHandle:
        """Replace the mode policy: `closure(output, modes)` returns one of `modes`."""
        return self._engine.registry.register(Trigger(TriggerKind.OUTPUT_MODE_SELECT), closure, state)

    def remove_callback(self, handle: CallbackHandle) -> bool:
        return self._engine.registry.unregister(handle)

    @staticmethod
    def mode(width: int, height: int, refresh: int) -> ModeDescriptor:
        """Build a mode value, refresh in millihertz."""
        return ModeDescriptor(int(width), int(height), int(refresh))


class Log:
    """Leveled logging into the compositor log, with optional key=value fields."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _log(self, level: int, message: str, fields: dict[str, Any]) -> None:
        extra = {f"{k}_" if k in RECORD_ATTRIBUTES else k: v for k, v in fields.items()}
        self._logger.log(level, "%s", message, extra=extra)

    def debug(self, message: str, **fields: Any) -> None:  # noqa: ANN401
        self._log(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:  # noqa: ANN401
        self._log(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:  # noqa: ANN401
        self._log(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:  # noqa: ANN401
        self._log(logging.ERROR, message, fields)


class _Constructors:
    def __init__(self, engine: ScriptEngine) -> None:
        self._engine = engine

    def _create(self, kind: NodeKind) -> WidgetRef:
        tree = self._engine.tree
        return wrap(tree, tree.create(kind))


class WidgetConstructors(_Constructors):
    """`widget.*`: leaf widgets, created detached."""

    def text(self, text: str = "") -> TextWidget:
        widget = self._create(NodeKind.TEXT)
        assert isinstance(widget, TextWidget)
        widget.text = text
        return widget

    def logger(self) -> LoggerWidget:
        """A console receiving every compositor log line."""
        widget = self._create(NodeKind.LOGGER)
        assert isinstance(widget, LoggerWidget)
        return widget

    def fps(self) -> FpsWidget:
        widget = self._create(NodeKind.FPS)
        assert isinstance(widget, FpsWidget)
        return widget

    def button(self, label: str = "", on_click: Callable[..., Any] | None = None, state: State = None) -> ButtonWidget:
        widget = self._create(NodeKind.BUTTON)
        assert isinstance(widget, ButtonWidget)
        widget.label = label
        if on_click is not None:
            widget.on_click(on_click, state)
        return widget


class ContainerConstructors(_Constructors):
    """`container.*`: boxes are transparent, panels draw a backdrop."""

    def _container(self, kind: NodeKind, layout: Layout | str, position: Position | None) -> ContainerWidget:
        widget = self._create(kind)
        assert isinstance(widget, ContainerWidget)
        widget.layout = layout
        if position is not None:
            widget.position = position
        return widget

    def box(self, layout: Layout | str = Layout.VERTICAL, position: Position | None = None) -> ContainerWidget:
        return self._container(NodeKind.BOX, layout, position)

    def panel(self, layout: Layout | str = Layout.VERTICAL, position: Position | None = None) -> ContainerWidget:
        return self._container(NodeKind.PANEL, layout, position)


class MenuConstructors(_Constructors):
    def new(self, label: str = "") -> MenuWidget:
        widget = self._create(NodeKind.MENU)
        assert isinstance(widget, MenuWidget)
        widget.label = label
        return widget

    def label(self, menu: MenuWidget, label: str) -> None:
        menu.label = label


class LayoutConstructors:
    @staticmethod
    def vertical() -> Layout:
        return Layout.VERTICAL

    @staticmethod
    def horizontal() -> Layout:
        return Layout.HORIZONTAL


class PositionConstructors:
    """`position.*`: where a root container sits on its output."""

    @staticmethod
    def fixed(x: int, y: int) -> Position:
        return Position(PositionKind.FIXED, int(x), int(y))

    @staticmethod
    def left() -> Position:
        return Position(PositionKind.LEFT)

    @staticmethod
    def right() -> Position:
        return Position(PositionKind.RIGHT)

    @staticmethod
    def top() -> Position:
        return Position(PositionKind.TOP)

    @staticmethod
    def bottom() -> Position:
        return Position(PositionKind.BOTTOM)

    @staticmethod
    def center() -> Position:
        return Position(PositionKind.CENTER)


class Bridge:  # pylint: disable=too-many-instance-attributes
    """Every name a script can use."""

    def __init__(self, engine: ScriptEngine) -> None:
        self.keyboard = Keyboard(engine)
        self.system = System(engine)
        self.outputs = Outputs(engine)
        self.log = Log(engine.script_log)
        self.widget = WidgetConstructors(engine)
        self.container = ContainerConstructors(engine)
        self.menu = MenuConstructors(engine)
        self.layout = LayoutConstructors()
        self.position = PositionConstructors()

    def namespace(self) -> dict[str, Any]:
        """Return the globals a script is executed with."""
        return {
            "anodium": self,
            "keyboard": self.keyboard,
            "system": self.system,
            "outputs": self.outputs,
            "log": self.log,
            "widget": self.widget,
            "container": self.container,
            "menu": self.menu,
            "layout": self.layout,
            "position": self.position,
        }
