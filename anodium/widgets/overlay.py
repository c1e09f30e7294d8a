"""Per-output overlay: the ordered list of root containers drawn on top of an output."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from ..models import OverlayLockedError, Size, TreeError
from .proxies import wrap

if TYPE_CHECKING:
    from .arena import NodeHandle
    from .proxies import WidgetRef
    from .tree import PaintItem, WidgetTree

__all__ = ["Overlay"]


class Overlay:
    """Root containers of one output.

    Roots may only be added while the overlay is open, that is while the
    output-attached callbacks of its output run.
    """

    def __init__(self, tree: WidgetTree, output_name: str) -> None:
        self.tree = tree
        self.output_name = output_name
        self.roots: list[NodeHandle] = []
        self.is_open = False

    def __repr__(self) -> str:
        return f"<overlay {self.output_name} roots={len(self.roots)}>"

    @contextmanager
    def opened(self) -> Iterator[Overlay]:
        """Allow root insertion for the duration of the block."""
        self.is_open = True
        try:
            yield self
        finally:
            self.is_open = False

    def insert(self, handle: NodeHandle) -> None:
        """Add a root container.

        Raises:
            OverlayLockedError: outside of the output-attached callbacks
            TreeError: if `handle` isn't a container
        """
        if not self.is_open:
            msg = f"widgets can only be added to {self.output_name} while it is being attached"
            raise OverlayLockedError(msg)
        node = self.tree.node(handle)
        if not node.is_container:
            msg = f"only containers can be overlay roots, not {node.kind.value}"
            raise TreeError(msg)
        self.tree.detach(handle)
        node.owner = self
        node.dirty = True
        self.roots.append(handle)

    def remove(self, handle: NodeHandle) -> None:
        """Destroy a root container and its subtree."""
        if handle not in self.roots:
            msg = f"{handle!r} isn't a root of {self.output_name}"
            raise TreeError(msg)
        self.tree.destroy(handle)

    def destroy(self) -> None:
        """Destroy every root (output removed or script reloaded)."""
        for handle in list(self.roots):
            if handle in self.tree:
                self.tree.destroy(handle)
        self.roots.clear()
        self.is_open = False

    # Script facing API

    def add_widget(self, widget: WidgetRef) -> WidgetRef:
        """Add a container as a root of this overlay and return it."""
        self.insert(widget.handle)
        return widget

    def remove_widget(self, widget: WidgetRef) -> None:
        """Destroy a root container."""
        self.remove(widget.handle)

    @property
    def widgets(self) -> list[WidgetRef]:
        """Root containers, in paint order."""
        return [wrap(self.tree, h) for h in self.roots]

    # Rendering

    def layout(self, output: Size) -> None:
        """Lay out every root for an output of size `output`."""
        self.tree.layout(self, output)

    def snapshot(self) -> tuple[PaintItem, ...]:
        """Return the current paint list."""
        return self.tree.snapshot(self)

    def feed_frame(self, timestamp: float) -> None:
        """Forward a frame timestamp to the FPS meters."""
        self.tree.feed_frame(self, timestamp)

    def click(self, x: int, y: int) -> bool:
        """Dispatch a click at (x, y), returns True if a widget consumed it."""
        handle = self.tree.hit_test(self, x, y)
        if handle is None:
            return False
        return self.tree.click(handle, x, y)
