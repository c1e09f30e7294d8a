from unittest.mock import Mock

import pytest

from anodium.timers import TimerScheduler


@pytest.fixture
def scheduler(registry, clock, test_logger):
    return TimerScheduler(registry, test_logger, clock)


def test_repeats_while_the_closure_returns_true(scheduler, clock):
    counter = 0
    fired_at = []

    def tick():
        nonlocal counter
        counter += 1
        fired_at.append(clock.now)
        return counter <= 3

    scheduler.add_timeout(1000, tick)
    for now in range(0, 6001, 100):
        clock.now = now
        scheduler.poll()

    assert fired_at == [1000, 2000, 3000, 4000]
    assert len(scheduler) == 0


def test_fires_at_most_once_per_poll(scheduler):
    closure = Mock(return_value=True)
    scheduler.add_timeout(100, closure, now_ms=0)

    assert scheduler.poll(1000) == 1
    assert scheduler.next_deadline() == 1100


def test_an_error_only_removes_the_failing_timer(scheduler):
    def broken():
        raise RuntimeError("nope")

    healthy = Mock(return_value=True)
    scheduler.add_timeout(1000, broken, now_ms=0)
    scheduler.add_timeout(1000, healthy, now_ms=0)

    assert scheduler.poll(1000) == 2
    assert scheduler.poll(2000) == 1
    assert healthy.call_count == 2
    assert len(scheduler) == 1


def test_timers_added_while_polling_wait_for_the_next_poll(scheduler, clock):
    late = Mock(return_value=False)

    def spawner():
        scheduler.add_timeout(0, late)
        return False

    clock.now = 1000
    scheduler.add_timeout(1000, spawner, now_ms=0)

    assert scheduler.poll() == 1
    late.assert_not_called()
    assert scheduler.poll() == 1
    late.assert_called_once_with()


def test_due_order(scheduler):
    calls = []
    scheduler.add_timeout(500, lambda: calls.append("late"), now_ms=100)
    scheduler.add_timeout(500, lambda: calls.append("first"), now_ms=0)
    scheduler.add_timeout(500, lambda: calls.append("second"), now_ms=0)

    scheduler.poll(1000)
    assert calls == ["first", "second", "late"]


def test_cancel(scheduler):
    closure = Mock(return_value=True)
    handle = scheduler.add_timeout(10, closure, now_ms=0)

    assert scheduler.cancel(handle)
    assert not scheduler.cancel(handle)
    assert scheduler.poll(100) == 0
    closure.assert_not_called()


def test_unregistered_timers_are_forgotten(scheduler, registry):
    handle = scheduler.add_timeout(10, Mock(return_value=True), now_ms=0)
    registry.unregister(handle)

    assert scheduler.next_deadline() is None
    assert scheduler.poll(100) == 0


def test_state_is_kept_between_runs(scheduler):
    def count(state):
        state.runs += 1
        return state.runs < 2

    handle = scheduler.add_timeout(10, count, {"runs": 0}, now_ms=0)
    scheduler.poll(10)
    scheduler.poll(20)
    assert scheduler.poll(30) == 0
    assert handle not in scheduler.registry


def test_negative_period(scheduler):
    with pytest.raises(ValueError):
        scheduler.add_timeout(-1, Mock())
