import dataclasses
from unittest.mock import Mock

import pytest

from anodium.models import OverlayLockedError, Size, StaleHandleError, TreeError
from anodium.registry import CallbackRegistry
from anodium.widgets import Metrics, NodeKind, Overlay, Position, PositionKind, WidgetTree
from anodium.widgets.nodes import BLACK, Layout
from anodium.widgets.proxies import wrap

SCREEN = Size(1920, 1080)


def make_root(tree, overlay, kind=NodeKind.PANEL, layout=Layout.VERTICAL, position=None):
    root = tree.create(kind)
    payload = tree.node(root).payload
    payload.layout = layout
    payload.position = position or Position(PositionKind.FIXED, 0, 0)
    with overlay.opened():
        overlay.insert(root)
    return root


def sized(tree, kind, width, height):
    handle = tree.create(kind)
    tree.node(handle).size = Size(width, height)
    return handle


def test_constructors_create_detached_nodes(tree):
    handle = tree.create(NodeKind.TEXT)
    assert tree.node(handle).owner is None
    assert len(tree) == 1


def test_only_containers_hold_children(tree):
    text = tree.create(NodeKind.TEXT)
    with pytest.raises(TreeError):
        tree.add_child(text, tree.create(NodeKind.TEXT))


def test_cycles_are_rejected(tree):
    outer = tree.create(NodeKind.BOX)
    inner = tree.create(NodeKind.BOX)
    tree.add_child(outer, inner)
    with pytest.raises(TreeError):
        tree.add_child(inner, outer)
    with pytest.raises(TreeError):
        tree.add_child(outer, outer)


def test_reparenting_detaches_first(tree):
    first = tree.create(NodeKind.BOX)
    second = tree.create(NodeKind.PANEL)
    text = tree.create(NodeKind.TEXT)
    tree.add_child(first, text)
    tree.add_child(second, text)

    assert tree.owned(first) == []
    assert tree.owned(second) == [text]
    assert tree.node(text).owner == second


def test_destroy_frees_the_subtree_and_its_callbacks(tree, registry):
    panel = tree.create(NodeKind.PANEL)
    button = tree.create(NodeKind.BUTTON)
    tree.add_child(panel, button)
    tree.set_on_click(button, Mock())
    assert len(registry) == 1

    tree.destroy(panel)
    with pytest.raises(StaleHandleError):
        tree.node(button)
    assert len(registry) == 0
    assert len(tree) == 0


def test_reused_slots_do_not_alias(tree):
    old = tree.create(NodeKind.TEXT)
    tree.destroy(old)
    new = tree.create(NodeKind.TEXT)

    assert new.index == old.index
    assert new != old
    assert old not in tree
    with pytest.raises(StaleHandleError):
        wrap(tree, old)


def test_roots_only_while_the_overlay_is_open(tree, overlay):
    panel = tree.create(NodeKind.PANEL)
    with pytest.raises(OverlayLockedError):
        overlay.insert(panel)
    with overlay.opened():
        overlay.insert(panel)
        with pytest.raises(TreeError):
            overlay.insert(tree.create(NodeKind.TEXT))
    assert overlay.roots == [panel]
    assert not overlay.is_open


def test_horizontal_layout(tree, overlay):
    root = make_root(tree, overlay, layout=Layout.HORIZONTAL)
    children = [sized(tree, NodeKind.TEXT, w, 20) for w in (50, 700, 35)]
    for child in children:
        tree.add_child(root, child)

    overlay.layout(SCREEN)
    assert [tree.node(c).rect.x for c in children] == [0, 50, 750]
    assert tree.node(root).rect.width == 785


def test_invisible_children_take_no_room(tree, overlay):
    root = make_root(tree, overlay)
    first = sized(tree, NodeKind.TEXT, 10, 10)
    second = sized(tree, NodeKind.TEXT, 10, 10)
    tree.add_child(root, first)
    tree.add_child(root, second)
    tree.node(first).visible = False
    tree.mark_dirty(first)

    overlay.layout(SCREEN)
    assert tree.node(first).rect is None
    assert tree.node(second).rect.y == 0
    assert [item.handle for item in overlay.snapshot()] == [root, second]


def test_clean_containers_are_not_laid_out_again(tree, overlay):
    root = make_root(tree, overlay)
    text = tree.create(NodeKind.TEXT)
    tree.add_child(root, text)

    overlay.layout(SCREEN)
    assert tree.relayouts == 1
    overlay.layout(SCREEN)
    assert tree.relayouts == 1

    wrap(tree, text).text = "changed"
    overlay.layout(SCREEN)
    assert tree.relayouts == 2


def test_text_metrics(tree):
    text = wrap(tree, tree.create(NodeKind.TEXT))
    text.text = "hello"
    assert tree.preferred_size(text.handle) == Size(48, 24)
    text.text = "ab\ncdef"
    assert tree.preferred_size(text.handle) == Size(40, 40)
    text.size = (5, 6)
    assert tree.preferred_size(text.handle) == Size(5, 6)


def test_snapshot_is_read_only(tree, overlay):
    root = make_root(tree, overlay, kind=NodeKind.BOX)
    panel = tree.create(NodeKind.PANEL)
    tree.add_child(root, panel)
    overlay.layout(SCREEN)

    items = overlay.snapshot()
    assert isinstance(items, tuple)
    assert items[0].backdrop is None
    assert items[1].backdrop == BLACK
    assert items[1].depth == 1
    with pytest.raises(dataclasses.FrozenInstanceError):
        items[0].alpha = 0.0


def test_opacity_is_inherited(tree, overlay):
    root = make_root(tree, overlay)
    tree.node(root).payload.opacity = 0.5
    text = tree.create(NodeKind.TEXT)
    tree.node(text).alpha = 0.5
    tree.add_child(root, text)
    overlay.layout(SCREEN)

    assert [item.alpha for item in overlay.snapshot()] == [0.5, 0.25]


def test_log_consoles_keep_the_last_lines(test_logger):
    tree = WidgetTree(CallbackRegistry(test_logger), test_logger, Metrics(logger_lines=2))
    console = wrap(tree, tree.create(NodeKind.LOGGER))
    for line in ("a", "b", "c"):
        tree.push_log(line)
    assert console.lines == ("b", "c")


def test_fps_meter(tree, overlay):
    root = make_root(tree, overlay)
    fps = tree.create(NodeKind.FPS)
    tree.add_child(root, fps)
    for timestamp in (0, 20, 40, 60):
        overlay.feed_frame(timestamp)
    overlay.layout(SCREEN)

    assert wrap(tree, fps).fps == pytest.approx(50.0)
    assert overlay.snapshot()[1].text == "50.0 fps"


def test_button_click(tree, overlay):
    root = make_root(tree, overlay, position=Position(PositionKind.FIXED, 10, 10))
    button = sized(tree, NodeKind.BUTTON, 40, 20)
    tree.add_child(root, button)
    clicked = Mock()
    tree.set_on_click(button, clicked)
    overlay.layout(SCREEN)

    assert overlay.click(15, 15)
    clicked.assert_called_once_with()
    assert not overlay.click(500, 500)


def test_menu_toggles_and_runs_items(tree, overlay):
    root = make_root(tree, overlay)
    menu = tree.create(NodeKind.MENU)
    tree.node(menu).payload.label = "File"
    tree.add_child(root, menu)
    quit_item = Mock()
    tree.add_menu_item(menu, "Quit", quit_item)
    overlay.layout(SCREEN)

    assert overlay.click(5, 5)
    assert tree.node(menu).payload.expanded
    overlay.layout(SCREEN)
    assert tree.node(menu).rect.height == 40
    assert overlay.snapshot()[1].lines == ("Quit",)

    assert overlay.click(5, 22)
    quit_item.assert_called_once_with()


def test_submenus(tree):
    menu = tree.create(NodeKind.MENU)
    sub = tree.create(NodeKind.MENU)
    tree.add_submenu(menu, "More", sub)
    assert tree.owned(menu) == [sub]
    with pytest.raises(TreeError):
        tree.add_submenu(sub, "Loop", menu)

    tree.destroy(menu)
    assert sub not in tree


def test_overlay_destroy(tree, overlay):
    root = make_root(tree, overlay)
    tree.add_child(root, tree.create(NodeKind.TEXT))
    overlay.destroy()
    assert overlay.roots == []
    assert len(tree) == 0


def test_overlay_remove_checks_roots(tree, overlay):
    with pytest.raises(TreeError):
        overlay.remove(tree.create(NodeKind.PANEL))


def test_unreferenced_detached_widgets_are_collected(tree):
    text = wrap(tree, tree.create(NodeKind.TEXT))
    handle = text.handle
    assert tree.collect() == 0

    del text
    assert tree.collect() == 1
    assert handle not in tree


def test_referenced_subtrees_survive_collection(tree):
    box = wrap(tree, tree.create(NodeKind.BOX))
    box.add_widget(wrap(tree, tree.create(NodeKind.TEXT)))
    assert tree.collect() == 0

    child = box.children[0]
    del box
    assert tree.collect() == 0
    assert len(tree) == 2

    del child
    assert tree.collect() == 2
    assert len(tree) == 0


def test_attached_widgets_are_never_collected(tree, overlay):
    panel = wrap(tree, tree.create(NodeKind.PANEL))
    panel.add_widget(wrap(tree, tree.create(NodeKind.TEXT)))
    with overlay.opened():
        overlay.add_widget(panel)
    del panel

    assert tree.collect() == 0
    assert len(tree) == 2


def test_untracked_nodes_are_left_alone(tree):
    tree.create(NodeKind.TEXT)
    assert tree.collect() == 0
    assert len(tree) == 1
