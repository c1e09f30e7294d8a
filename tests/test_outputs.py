from unittest.mock import Mock

import pytest

from anodium.host import HostProxy
from anodium.models import ModeDescriptor, OutputState, TriggerKind
from anodium.outputs import ModeQuery, OutputLifecycleController
from anodium.registry import Trigger
from anodium.widgets import NodeKind

from .testtools import RecordingHost

FHD = ModeDescriptor(1920, 1080, 60000)
FHD_144 = ModeDescriptor(1920, 1080, 144000)
HD = ModeDescriptor(1280, 720, 60000)


@pytest.fixture
def host():
    return RecordingHost()


@pytest.fixture
def controller(registry, tree, host, test_logger):
    return OutputLifecycleController(registry, tree, HostProxy(host, test_logger), test_logger)


def hook(registry, kind, closure):
    return registry.register(Trigger(kind), closure)


def test_identity_placement_without_hook(controller, host):
    controller.attach("DP-1", 1920, 1080)
    controller.attach("HDMI-A-1", 1280, 1024)

    assert [o.location for o in controller] == [(0, 0), (1920, 0)]
    assert controller.width == 3200
    assert host.placements()[-2:] == [("DP-1", 0, 0), ("HDMI-A-1", 1920, 0)]
    assert all(o.state is OutputState.PLACED for o in controller)


def test_rearrange_hook_is_applied_verbatim(controller, registry):
    seen = []

    def arrange(outputs):
        seen.append([o.name for o in outputs])
        return [(0, 0), (1920, 0)][: len(outputs)]

    hook(registry, TriggerKind.OUTPUT_REARRANGE, arrange)
    controller.attach("DP-1", 1920, 1080)
    controller.attach("DP-2", 1280, 1024)

    assert seen[-1] == ["DP-1", "DP-2"]
    assert controller.find_by_name("DP-1").location == (0, 0)
    assert controller.find_by_name("DP-2").location == (1920, 0)


def test_fixed_rearrangement_applies_once_every_output_is_there(controller, registry, host):
    hook(registry, TriggerKind.OUTPUT_REARRANGE, lambda outputs: [(0, 0), (1920, 0)])

    first = controller.attach("DP-1", 1920, 1080)
    assert host.placements() == []
    assert first.state is OutputState.ATTACHED

    second = controller.attach("DP-2", 1280, 1024)
    assert (first.location, second.location) == ((0, 0), (1920, 0))
    assert host.placements() == [("DP-1", 0, 0), ("DP-2", 1920, 0)]


@pytest.mark.parametrize(
    "result",
    [[(0, 0)], [(0, 0), (1, 2), (3, 4)], None, "0,0", [(0, 0), ("a", 1)], [(0, 0), (1, 2, 3)], [(0, 0), (True, 0)]],
)
def test_bad_placements_keep_previous_origins(controller, registry, result):
    controller.attach("DP-1", 1920, 1080)
    controller.attach("DP-2", 1280, 1024)
    hook(registry, TriggerKind.OUTPUT_REARRANGE, lambda outputs: result)

    assert not controller.rearrange()
    assert [o.location for o in controller] == [(0, 0), (1920, 0)]


def test_failing_rearrange_hook_keeps_origins(controller, registry):
    controller.attach("DP-1", 1920, 1080)

    def broken(outputs):
        raise RuntimeError("nope")

    hook(registry, TriggerKind.OUTPUT_REARRANGE, broken)
    assert not controller.rearrange()
    assert controller.find_by_index(0).location == (0, 0)


def test_only_the_latest_rearrange_hook_is_used(controller, registry):
    older = Mock(return_value=[(5, 5)])
    hook(registry, TriggerKind.OUTPUT_REARRANGE, older)
    hook(registry, TriggerKind.OUTPUT_REARRANGE, lambda outputs: [(7, 7)])

    controller.attach("DP-1", 1920, 1080)
    older.assert_not_called()
    assert controller.find_by_name("DP-1").location == (7, 7)


def test_mode_defaults_to_the_first_candidate(controller, host):
    output = controller.attach("DP-1", 800, 600, [FHD, HD])

    assert output.mode == FHD
    assert (output.width, output.height) == (1920, 1080)
    assert ("apply_mode", "DP-1", FHD) in host.calls


def test_mode_select_hook(controller, registry):
    def pick(output, modes):
        assert isinstance(modes, ModeQuery)
        return modes.find(1920, 1080, 144000)

    hook(registry, TriggerKind.OUTPUT_MODE_SELECT, pick)
    output = controller.attach("DP-1", 800, 600, [FHD, FHD_144, HD])
    assert output.mode == FHD_144
    assert output.refresh == 144000


@pytest.mark.parametrize("answer", [None, ModeDescriptor(640, 480, 60000), "1920x1080"])
def test_foreign_modes_fall_back_to_the_first_candidate(controller, registry, answer):
    hook(registry, TriggerKind.OUTPUT_MODE_SELECT, lambda output, modes: answer)
    assert controller.attach("DP-1", 800, 600, [HD, FHD]).mode == HD


def test_no_candidates(controller, host):
    controller.attach("DP-1", 800, 600)
    assert controller.negotiate_mode("DP-1", []) is None
    assert controller.negotiate_mode("unknown", [FHD]) is None
    assert not [c for c in host.calls if c[0] == "apply_mode"]


def test_mode_query():
    query = ModeQuery([HD, FHD, FHD_144])
    assert len(query) == 3
    assert query[0] == HD
    assert list(query) == [HD, FHD, FHD_144]
    assert query.find(1920, 1080) == FHD
    assert query.find(1, 1) is None
    assert query.best() == FHD_144
    assert ModeQuery([]).best() is None


def test_attach_callbacks_may_add_widgets(controller, registry, tree):
    def on_new(output):
        output.overlay.insert(tree.create(NodeKind.PANEL))

    hook(registry, TriggerKind.OUTPUT_ATTACHED, on_new)
    output = controller.attach("DP-1", 1920, 1080)
    assert len(output.overlay.roots) == 1
    assert not output.overlay.is_open


def test_remove_destroys_the_overlay_and_rearranges(controller, tree):
    controller.attach("DP-1", 1920, 1080)
    second = controller.attach("DP-2", 1280, 1024)
    first = controller.find_by_name("DP-1")
    with first.overlay.opened():
        first.overlay.insert(tree.create(NodeKind.BOX))

    assert controller.remove("DP-1")
    assert not controller.remove("DP-1")
    assert len(tree) == 0
    assert first.state is OutputState.UNKNOWN
    assert second.location == (0, 0)
    assert len(controller) == 1


def test_lookups(controller):
    controller.attach("DP-1", 1920, 1080)
    controller.attach("DP-2", 1280, 1024)

    assert controller.find_by_index(1).name == "DP-2"
    assert controller.find_by_index(-1).name == "DP-2"
    assert controller.find_by_index(2) is None
    assert controller.find_by_position(2000, 10).name == "DP-2"
    assert controller.find_by_position(5000, 10) is None
    assert controller.height_at(100) == 1080
    assert "DP-1" in controller


def test_attaching_twice_replaces_the_output(controller):
    first = controller.attach("DP-1", 1920, 1080)
    second = controller.attach("DP-1", 1280, 720)
    assert first is not second
    assert len(controller) == 1
    assert first.state is OutputState.UNKNOWN
