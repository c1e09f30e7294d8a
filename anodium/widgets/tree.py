"""The overlay scene graph: node storage, structure, layout and painting."""

from __future__ import annotations

from collections import Counter, deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..constants import (
    DEFAULT_CHAR_WIDTH,
    DEFAULT_FPS_SAMPLES,
    DEFAULT_LINE_HEIGHT,
    DEFAULT_LOGGER_LINES,
    LOGGER_WIDGET_WIDTH,
    WIDGET_PADDING,
)
from ..models import Rect, Size, TreeError, TriggerKind
from ..registry import CallbackHandle, Trigger
from .arena import Arena, NodeHandle
from .layout import compute_layout, place_root, stack_size
from .nodes import (
    ButtonData,
    Color,
    ContainerData,
    FpsData,
    LoggerData,
    MenuData,
    MenuItem,
    Node,
    NodeKind,
    Payload,
    TextData,
)

if TYPE_CHECKING:
    import logging

    from ..registry import CallbackRegistry
    from .overlay import Overlay

__all__ = ["Metrics", "PaintItem", "WidgetTree"]

FPS_TEMPLATE = "000.0 fps"


@dataclass(frozen=True)
class Metrics:
    """Text metrics and buffer sizes used by the widgets."""

    char_width: int = DEFAULT_CHAR_WIDTH
    line_height: int = DEFAULT_LINE_HEIGHT
    logger_lines: int = DEFAULT_LOGGER_LINES
    fps_samples: int = DEFAULT_FPS_SAMPLES


@dataclass(frozen=True)
class PaintItem:  # pylint: disable=too-many-instance-attributes
    """Read-only description of one node for the renderer.

    `backdrop` is None when nothing opaque should be drawn behind the node.
    """

    handle: NodeHandle
    kind: NodeKind
    rect: Rect
    depth: int
    text: str
    lines: tuple[str, ...]
    color: Color
    backdrop: Color | None
    alpha: float


class WidgetTree:
    """Owns every widget node of a script environment."""

    def __init__(self, registry: CallbackRegistry, log: logging.Logger, metrics: Metrics | None = None) -> None:
        self.arena: Arena[Node] = Arena()
        self.registry = registry
        self.log = log
        self.metrics = metrics or Metrics()
        self.relayouts = 0
        self._refs: Counter[NodeHandle] = Counter()
        self._released: set[NodeHandle] = set()

    def __len__(self) -> int:
        return len(self.arena)

    def __contains__(self, handle: object) -> bool:
        return handle in self.arena

    # Construction & lookup

    def create(self, kind: NodeKind) -> NodeHandle:
        """Create a detached node of `kind`."""
        return self.arena.insert(Node(kind, self._new_payload(kind)))

    def _new_payload(self, kind: NodeKind) -> Payload:
        factories: dict[NodeKind, Callable[[], Payload]] = {
            NodeKind.TEXT: TextData,
            NodeKind.LOGGER: lambda: LoggerData(deque(maxlen=self.metrics.logger_lines)),
            NodeKind.FPS: lambda: FpsData(deque(maxlen=self.metrics.fps_samples)),
            NodeKind.BUTTON: ButtonData,
            NodeKind.MENU: MenuData,
            NodeKind.BOX: lambda: ContainerData(background=False),
            NodeKind.PANEL: lambda: ContainerData(background=True),
        }
        return factories[kind]()

    def node(self, handle: NodeHandle) -> Node:
        """Return the node of a live handle (raises StaleHandleError)."""
        return self.arena.get(handle)

    def ancestors(self, handle: NodeHandle) -> Iterator[NodeHandle]:
        """Yield the owner chain of `handle`, nearest first, up to the root."""
        owner = self.node(handle).owner
        while isinstance(owner, NodeHandle):
            yield owner
            owner = self.node(owner).owner

    def owned(self, handle: NodeHandle) -> list[NodeHandle]:
        """Return the nodes directly owned by `handle` (children, submenus)."""
        node = self.node(handle)
        if isinstance(node.payload, ContainerData):
            return list(node.payload.children)
        if isinstance(node.payload, MenuData):
            return [item.submenu for item in node.payload.items if item.submenu is not None]
        return []

    def mark_dirty(self, handle: NodeHandle) -> None:
        """Flag `handle` and its ancestors for relayout."""
        self.node(handle).dirty = True
        for ancestor in self.ancestors(handle):
            self.node(ancestor).dirty = True

    # Structure

    def add_child(self, parent: NodeHandle, child: NodeHandle) -> None:
        """Append `child` to the container `parent`, detaching it first.

        Raises:
            TreeError: if `parent` isn't a container or is `child` itself or
                one of its descendants
        """
        parent_node = self.node(parent)
        if not isinstance(parent_node.payload, ContainerData):
            msg = f"{parent_node.kind.value} widgets can't hold children"
            raise TreeError(msg)
        if child == parent or child in self.ancestors(parent):
            msg = "a widget can't be added below itself"
            raise TreeError(msg)
        child_node = self.node(child)
        self.detach(child)
        child_node.owner = parent
        parent_node.payload.children.append(child)
        self.mark_dirty(child)

    def add_submenu(self, menu: NodeHandle, label: str, submenu: NodeHandle) -> None:
        """Append an entry opening `submenu` to `menu`."""
        menu_node = self.node(menu)
        if not isinstance(menu_node.payload, MenuData) or self.node(submenu).kind is not NodeKind.MENU:
            msg = "submenus link two menu widgets"
            raise TreeError(msg)
        if submenu == menu or submenu in self.ancestors(menu):
            msg = "a menu can't contain itself"
            raise TreeError(msg)
        self.detach(submenu)
        self.node(submenu).owner = menu
        menu_node.payload.items.append(MenuItem(label, submenu=submenu))
        self.mark_dirty(menu)

    def add_menu_item(self, menu: NodeHandle, label: str, closure: Callable[..., Any], state: dict | None = None) -> CallbackHandle:
        """Append an entry running `closure` when clicked."""
        menu_node = self.node(menu)
        if not isinstance(menu_node.payload, MenuData):
            msg = f"{menu_node.kind.value} widgets have no items"
            raise TreeError(msg)
        handle = self.registry.register(Trigger(TriggerKind.WIDGET_CLICK, menu), closure, state)
        menu_node.payload.items.append(MenuItem(label, callback=handle))
        self.mark_dirty(menu)
        return handle

    def set_on_click(self, button: NodeHandle, closure: Callable[..., Any] | None, state: dict | None = None) -> CallbackHandle | None:
        """Replace the click callback of a button."""
        payload = self.node(button).payload
        if not isinstance(payload, ButtonData):
            msg = "only buttons have a click callback"
            raise TreeError(msg)
        if payload.on_click is not None:
            self.registry.unregister(payload.on_click)
        payload.on_click = None if closure is None else self.registry.register(Trigger(TriggerKind.WIDGET_CLICK, button), closure, state)
        return payload.on_click

    def detach(self, handle: NodeHandle) -> None:
        """Unlink `handle` from its owner, keeping it alive."""
        node = self.node(handle)
        owner = node.owner
        if isinstance(owner, NodeHandle):
            owner_payload = self.node(owner).payload
            if isinstance(owner_payload, ContainerData):
                owner_payload.children.remove(handle)
            elif isinstance(owner_payload, MenuData):
                owner_payload.items = [item for item in owner_payload.items if item.submenu != handle]
            self.mark_dirty(owner)
        elif owner is not None:
            owner.roots.remove(handle)
        node.owner = None
        node.rect = None

    def destroy(self, handle: NodeHandle) -> None:
        """Detach `handle` and free it together with everything it owns."""
        if handle not in self.arena:
            return
        self.detach(handle)
        self._free_subtree(handle)

    def _free_subtree(self, handle: NodeHandle) -> None:
        for child in self.owned(handle):
            self._free_subtree(child)
        node = self.arena.remove(handle)
        if isinstance(node.payload, ButtonData) and node.payload.on_click is not None:
            self.registry.unregister(node.payload.on_click)
        elif isinstance(node.payload, MenuData):
            for item in node.payload.items:
                if item.callback is not None:
                    self.registry.unregister(item.callback)

    def clear(self) -> None:
        """Free every node (script environment teardown)."""
        self.arena.clear()
        self._refs.clear()
        self._released.clear()

    # Script references

    def retain(self, handle: NodeHandle) -> None:
        """Count one more script reference to `handle`."""
        self._refs[handle] += 1

    def release(self, handle: NodeHandle) -> None:
        """Drop a script reference, the node becomes a collection candidate at zero."""
        if handle not in self._refs:
            return
        self._refs[handle] -= 1
        if self._refs[handle] <= 0:
            del self._refs[handle]
            self._released.add(handle)

    def subtree(self, handle: NodeHandle) -> Iterator[NodeHandle]:
        """Yield `handle` and everything it owns, depth-first."""
        yield handle
        for child in self.owned(handle):
            yield from self.subtree(child)

    def collect(self) -> int:
        """Free the detached subtrees no script reference points into.

        Returns:
            The number of nodes freed
        """
        candidates, self._released = self._released, set()
        count = len(self.arena)
        for handle in candidates:
            if handle not in self.arena:
                continue
            top = [handle, *self.ancestors(handle)][-1]
            if self.node(top).owner is not None:
                continue
            if any(h in self._refs for h in self.subtree(top)):
                continue
            self._free_subtree(top)
        freed = count - len(self.arena)
        if freed:
            self.log.debug("collected %s unreachable widget(s)", freed)
        return freed

    def walk(self, overlay: Overlay) -> Iterator[NodeHandle]:
        """Yield the nodes of an overlay depth-first, in paint order."""
        stack = list(reversed(overlay.roots))
        while stack:
            handle = stack.pop()
            yield handle
            stack.extend(reversed(self.owned(handle)))

    # Sizing & layout

    def preferred_size(self, handle: NodeHandle) -> Size:
        """Return the explicit size of a node or the size its content needs."""
        node = self.node(handle)
        if node.size is not None:
            return node.size
        char_width = self.metrics.char_width
        line_height = self.metrics.line_height
        payload = node.payload
        if isinstance(payload, ContainerData):
            visible = [c for c in payload.children if self.node(c).visible]
            return stack_size(payload.layout, [self.preferred_size(c) for c in visible])
        if isinstance(payload, TextData):
            lines = payload.text.split("\n")
            return Size(max(len(line) for line in lines) * char_width + 2 * WIDGET_PADDING, len(lines) * line_height + 2 * WIDGET_PADDING)
        if isinstance(payload, LoggerData):
            rows = payload.lines.maxlen or len(payload.lines)
            return Size(LOGGER_WIDGET_WIDTH, rows * line_height + 2 * WIDGET_PADDING)
        if isinstance(payload, FpsData):
            return Size(len(FPS_TEMPLATE) * char_width + 2 * WIDGET_PADDING, line_height + 2 * WIDGET_PADDING)
        if isinstance(payload, ButtonData):
            return Size(len(payload.label) * char_width + 4 * WIDGET_PADDING, line_height + 2 * WIDGET_PADDING)
        assert isinstance(payload, MenuData)
        rows = [payload.label, *(item.label for item in payload.items)] if payload.expanded else [payload.label]
        return Size(max(len(r) for r in rows) * char_width + 2 * WIDGET_PADDING, len(rows) * line_height + 2 * WIDGET_PADDING)

    def layout(self, overlay: Overlay, output: Size) -> None:
        """Compute the rectangles of every visible node of `overlay`."""
        for root in overlay.roots:
            node = self.node(root)
            if not node.visible:
                node.rect = None
                continue
            assert isinstance(node.payload, ContainerData)
            self._layout_node(root, place_root(node.payload.position, output, self.preferred_size(root)))

    def _layout_node(self, handle: NodeHandle, bounds: Rect) -> None:
        node = self.node(handle)
        changed = node.dirty or node.rect != bounds
        node.rect = bounds
        node.dirty = False
        payload = node.payload
        if isinstance(payload, MenuData):
            self._layout_submenus(payload, bounds)
            return
        if not isinstance(payload, ContainerData) or not changed:
            return
        self.relayouts += 1
        visible = []
        for child in payload.children:
            if self.node(child).visible:
                visible.append(child)
            else:
                self.node(child).rect = None
        sizes = [self.preferred_size(c) for c in visible]
        rects = compute_layout(payload.layout, bounds, sizes, clip=not payload.scroll, offset=payload.scroll_offset)
        for child, rect in zip(visible, rects, strict=True):
            self._layout_node(child, rect)

    def _layout_submenus(self, menu: MenuData, bounds: Rect) -> None:
        """Open submenus sit right of their entry."""
        for row, item in enumerate(menu.items, start=1):
            if item.submenu is None:
                continue
            submenu = self.node(item.submenu)
            if not (menu.expanded and submenu.visible):
                submenu.rect = None
                continue
            size = self.preferred_size(item.submenu)
            top = bounds.y + WIDGET_PADDING + row * self.metrics.line_height
            self._layout_node(item.submenu, Rect(bounds.right, top, size.width, size.height))

    # Painting & feeds

    def snapshot(self, overlay: Overlay) -> tuple[PaintItem, ...]:
        """Return the paint list of an overlay, as laid out by the last `layout`."""
        items: list[PaintItem] = []
        for root in overlay.roots:
            self._paint(root, 0, 1.0, items)
        return tuple(items)

    def _paint(self, handle: NodeHandle, depth: int, opacity: float, items: list[PaintItem]) -> None:
        node = self.node(handle)
        if not node.visible or node.rect is None:
            return
        payload = node.payload
        alpha = node.alpha * opacity
        backdrop = None
        text = ""
        lines: tuple[str, ...] = ()
        if isinstance(payload, ContainerData):
            alpha *= payload.opacity
            backdrop = node.background_color if payload.background else None
        elif isinstance(payload, TextData):
            text = payload.text
        elif isinstance(payload, LoggerData):
            lines = tuple(payload.lines)
        elif isinstance(payload, FpsData):
            text = f"{payload.fps:.1f} fps"
        elif isinstance(payload, ButtonData):
            text = payload.label
            backdrop = node.background_color
        elif isinstance(payload, MenuData):
            text = payload.label
            lines = tuple(item.label for item in payload.items) if payload.expanded else ()
            backdrop = node.background_color
        items.append(PaintItem(handle, node.kind, node.rect, depth, text, lines, node.color, backdrop, alpha))
        child_opacity = alpha if isinstance(payload, ContainerData) else opacity
        for child in self.owned(handle):
            self._paint(child, depth + 1, child_opacity, items)

    def push_log(self, line: str) -> None:
        """Append a line to every log console."""
        for _, node in self.arena.items():
            if isinstance(node.payload, LoggerData):
                node.payload.lines.append(line)

    def feed_frame(self, overlay: Overlay, timestamp: float) -> None:
        """Give a frame timestamp to the FPS meters of `overlay`."""
        for handle in self.walk(overlay):
            payload = self.node(handle).payload
            if isinstance(payload, FpsData):
                payload.add_frame(timestamp)

    # Pointer

    def hit_test(self, overlay: Overlay, x: int, y: int) -> NodeHandle | None:
        """Return the topmost visible clickable node under (x, y)."""
        found = None
        for item in self.snapshot(overlay):
            if item.kind in {NodeKind.BUTTON, NodeKind.MENU} and item.rect.contains(x, y):
                found = item.handle
        return found

    def click(self, handle: NodeHandle, x: int, y: int) -> bool:
        """Activate a button or a menu row at (x, y) (overlay coordinates).

        Returns:
            True if something reacted to the click
        """
        node = self.node(handle)
        payload = node.payload
        if isinstance(payload, ButtonData):
            if payload.on_click is None:
                return False
            self.registry.invoke(payload.on_click)
            return True
        if not isinstance(payload, MenuData) or node.rect is None:
            return False
        row = max(0, (y - node.rect.y - WIDGET_PADDING) // self.metrics.line_height)
        if row == 0 or not payload.expanded:
            payload.expanded = not payload.expanded
            self.mark_dirty(handle)
            return True
        if row > len(payload.items):
            return False
        item = payload.items[row - 1]
        if item.callback is not None:
            self.registry.invoke(item.callback)
        elif item.submenu is not None:
            submenu = self.node(item.submenu).payload
            assert isinstance(submenu, MenuData)
            submenu.expanded = not submenu.expanded
            self.mark_dirty(item.submenu)
        return True
