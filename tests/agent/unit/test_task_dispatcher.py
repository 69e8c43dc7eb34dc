import threading

import pytest
from unittest.mock import MagicMock

from screenpilot.errors import TriggerSecurityError
from screenpilot.triggers import TaskDispatcher


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _dispatcher(scheduler=None):
    clock = FakeClock()
    start_task = MagicMock()
    return TaskDispatcher(start_task, scheduler=scheduler, clock=clock), start_task, clock


def test_duplicate_within_window_is_dropped():
    dispatcher, start_task, clock = _dispatcher()

    assert dispatcher.submit("Check my calendar") is True
    clock.now = 59.0
    assert dispatcher.submit("Check my calendar") is False
    clock.now = 60.0
    assert dispatcher.submit("Check my calendar") is True

    assert start_task.call_count == 2


def test_different_tasks_are_independent():
    dispatcher, start_task, clock = _dispatcher()

    assert dispatcher.submit("Task A")
    clock.now = 1.0
    assert dispatcher.submit("Task B")

    assert [c.args[0] for c in start_task.call_args_list] == ["Task A", "Task B"]


def test_blank_task_is_ignored():
    dispatcher, start_task, _ = _dispatcher()

    assert dispatcher.submit("   ") is False
    assert dispatcher.submit(None) is False
    start_task.assert_not_called()


def test_stale_entries_are_evicted():
    dispatcher, _, clock = _dispatcher()

    dispatcher.submit("old task")
    clock.now = 120.0
    dispatcher.submit("new task")

    assert dispatcher.cached_count() == 1


def test_trigger_rescheduled_only_after_handoff():
    scheduler = MagicMock()
    dispatcher, _, clock = _dispatcher(scheduler)

    dispatcher.submit("Water the plants", trigger_id="daily-1")
    clock.now = 5.0
    dispatcher.submit("Water the plants", trigger_id="daily-1")

    scheduler.reschedule.assert_called_once_with("daily-1")


def test_reschedule_permission_denied():
    scheduler = MagicMock()
    scheduler.reschedule.side_effect = PermissionError("exact alarms not allowed")
    dispatcher, start_task, _ = _dispatcher(scheduler)

    with pytest.raises(TriggerSecurityError) as exc:
        dispatcher.submit("Water the plants", trigger_id="daily-1")

    assert isinstance(exc.value, PermissionError)
    start_task.assert_called_once_with("Water the plants")


def test_same_task_from_many_threads_starts_once():
    dispatcher, start_task, _ = _dispatcher()
    barrier = threading.Barrier(8)
    accepted = []

    def trigger():
        barrier.wait()
        accepted.append(dispatcher.submit("Read my messages"))

    threads = [threading.Thread(target=trigger) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert start_task.call_count == 1
    assert sorted(accepted) == [False] * 7 + [True]
