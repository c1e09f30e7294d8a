"""Layout strategies: pure functions from bounds and sizes to rectangles."""

from collections.abc import Sequence

from ..models import Rect, Size
from .nodes import Layout, Position, PositionKind

__all__ = ["clip_rect", "compute_layout", "place_root", "stack_size"]


def clip_rect(rect: Rect, bounds: Rect) -> Rect:
    """Return the part of `rect` inside `bounds` (zero sized when disjoint)."""
    x = min(max(rect.x, bounds.x), bounds.right)
    y = min(max(rect.y, bounds.y), bounds.bottom)
    right = max(min(rect.right, bounds.right), x)
    bottom = max(min(rect.bottom, bounds.bottom), y)
    return Rect(x, y, right - x, bottom - y)


def compute_layout(layout: Layout, bounds: Rect, sizes: Sequence[Size], clip: bool = True, offset: int = 0) -> list[Rect]:
    """Place children one after the other along the layout axis.

    Args:
        layout: stacking direction
        bounds: the container rectangle
        sizes: preferred sizes of the children, in paint order
        clip: clip every child to `bounds`
        offset: scroll offset along the layout axis

    Returns:
        One rectangle per size, no gaps and no overlap
    """
    rects = []
    cursor = -offset
    for size in sizes:
        if layout is Layout.HORIZONTAL:
            rect = Rect(bounds.x + cursor, bounds.y, size.width, size.height)
            cursor += size.width
        else:
            rect = Rect(bounds.x, bounds.y + cursor, size.width, size.height)
            cursor += size.height
        rects.append(clip_rect(rect, bounds) if clip else rect)
    return rects


def stack_size(layout: Layout, sizes: Sequence[Size]) -> Size:
    """Return the size needed to stack `sizes` without clipping."""
    if not sizes:
        return Size()
    if layout is Layout.HORIZONTAL:
        return Size(sum(s.width for s in sizes), max(s.height for s in sizes))
    return Size(max(s.width for s in sizes), sum(s.height for s in sizes))


def place_root(position: Position, output: Size, preferred: Size) -> Rect:
    """Return the rectangle of a root container on an output of size `output`."""
    kind = position.kind
    if kind is PositionKind.LEFT:
        return Rect(0, 0, preferred.width, output.height)
    if kind is PositionKind.RIGHT:
        return Rect(output.width - preferred.width, 0, preferred.width, output.height)
    if kind is PositionKind.TOP:
        return Rect(0, 0, output.width, preferred.height)
    if kind is PositionKind.BOTTOM:
        return Rect(0, output.height - preferred.height, output.width, preferred.height)
    if kind is PositionKind.CENTER:
        return Rect((output.width - preferred.width) // 2, (output.height - preferred.height) // 2, preferred.width, preferred.height)
    return Rect(position.x, position.y, preferred.width, preferred.height)
