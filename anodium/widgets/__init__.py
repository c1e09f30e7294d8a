"""Overlay widgets.

Nodes live in a generation-checked arena owned by a WidgetTree; scripts only
hold the references from `proxies`, and renderers only see PaintItem
snapshots.
"""

from .arena import NodeHandle
from .nodes import Layout, NodeKind, Position, PositionKind
from .overlay import Overlay
from .tree import Metrics, PaintItem, WidgetTree

__all__ = ["Layout", "Metrics", "NodeHandle", "NodeKind", "Overlay", "PaintItem", "Position", "PositionKind", "WidgetTree"]
