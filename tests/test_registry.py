from unittest.mock import Mock

import pytest

from anodium.models import CallbackRuntimeError, TriggerKind
from anodium.registry import CallbackRegistry, Trigger

ATTACHED = Trigger(TriggerKind.OUTPUT_ATTACHED)


def test_fire_all_runs_in_registration_order(registry):
    calls = []
    registry.register(ATTACHED, lambda output: calls.append(("a", output)))
    registry.register(ATTACHED, lambda output: calls.append(("b", output)))
    registry.register(Trigger(TriggerKind.TIMER), lambda: calls.append("timer"))

    assert registry.fire_all(ATTACHED, "DP-1") == 2
    assert calls == [("a", "DP-1"), ("b", "DP-1")]


def test_duplicate_registrations_coexist(registry):
    closure = Mock()
    first = registry.register(ATTACHED, closure)
    second = registry.register(ATTACHED, closure)
    assert first != second

    registry.fire_all(ATTACHED)
    assert closure.call_count == 2


def test_unregister_during_dispatch_skips_pending_closures(registry):
    calls = []
    handles = {}

    def first():
        calls.append("first")
        registry.unregister(handles["second"])

    handles["first"] = registry.register(ATTACHED, first)
    handles["second"] = registry.register(ATTACHED, lambda: calls.append("second"))

    assert registry.fire_all(ATTACHED) == 1
    assert calls == ["first"]
    assert registry.fire_all(ATTACHED) == 1
    assert calls == ["first", "first"]


def test_unregister_twice(registry):
    handle = registry.register(ATTACHED, Mock())
    assert registry.unregister(handle)
    assert not registry.unregister(handle)
    assert handle not in registry


def test_latest_hook_wins(registry):
    older = registry.register(Trigger(TriggerKind.OUTPUT_REARRANGE), Mock())
    newer = registry.register(Trigger(TriggerKind.OUTPUT_REARRANGE), Mock())
    registry.register(ATTACHED, Mock())

    assert registry.latest(TriggerKind.OUTPUT_REARRANGE) == newer
    registry.unregister(newer)
    assert registry.latest(TriggerKind.OUTPUT_REARRANGE) == older
    assert registry.latest(TriggerKind.OUTPUT_MODE_SELECT) is None


def test_invoke_reports_errors(registry, test_logger):
    def broken():
        raise ZeroDivisionError

    handle = registry.register(ATTACHED, broken)
    assert registry.invoke(handle) == (False, None)
    test_logger.exception.assert_called_once()
    assert handle in registry


def test_strict_mode_reraises(test_logger):
    registry = CallbackRegistry(test_logger, strict=True)

    def broken():
        raise KeyError("boom")

    handle = registry.register(ATTACHED, broken)
    with pytest.raises(CallbackRuntimeError) as info:
        registry.invoke(handle)
    assert info.value.handle == handle
    assert isinstance(info.value.error, KeyError)


def test_state_cell_is_passed_by_reference(registry):
    def count(state):
        state.count += 1
        return state.count

    handle = registry.register(Trigger(TriggerKind.TIMER), count, {"count": 0})
    assert registry.invoke(handle) == (True, 1)
    assert registry.invoke(handle) == (True, 2)
    assert registry.state_of(handle).count == 2


def test_clear_tears_down_the_environment(registry):
    closure = Mock()
    handle = registry.register(ATTACHED, closure)
    registry.clear()

    assert registry.invoke(handle) == (False, None)
    assert registry.fire_all(ATTACHED) == 0
    closure.assert_not_called()
    assert len(registry) == 0

    fresh = registry.register(ATTACHED, closure)
    assert fresh.id > handle.id


def test_handles_by_kind(registry):
    attach = registry.register(ATTACHED, Mock())
    timer = registry.register(Trigger(TriggerKind.TIMER), Mock())
    assert registry.handles() == [attach, timer]
    assert registry.handles(TriggerKind.TIMER) == [timer]


def test_register_rejects_non_callables(registry):
    with pytest.raises(TypeError):
        registry.register(ATTACHED, "not a function")
