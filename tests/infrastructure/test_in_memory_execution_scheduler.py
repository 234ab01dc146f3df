from __future__ import annotations

import threading

from infrastructure.run.in_memory_execution_scheduler import InMemoryExecutionScheduler


def test_submit_and_wait() -> None:
    scheduler = InMemoryExecutionScheduler(max_workers=2)
    done = []

    scheduler.submit("e1", lambda: done.append("e1"))

    assert scheduler.wait("e1", timeout_sec=1) is True
    assert done == ["e1"]
    scheduler.shutdown()


def test_wait_times_out_for_long_task() -> None:
    scheduler = InMemoryExecutionScheduler(max_workers=1)
    release = threading.Event()

    scheduler.submit("e1", lambda: release.wait(5))

    assert scheduler.wait("e1", timeout_sec=0.05) is False
    release.set()
    assert scheduler.wait("e1", timeout_sec=1) is True
    scheduler.shutdown()


def test_wait_reports_done_when_task_raises() -> None:
    scheduler = InMemoryExecutionScheduler(max_workers=1)

    def boom() -> None:
        raise RuntimeError("boom")

    scheduler.submit("e1", boom)

    assert scheduler.wait("e1", timeout_sec=1) is True
    scheduler.shutdown()


def test_unknown_execution() -> None:
    scheduler = InMemoryExecutionScheduler()
    assert scheduler.get_future("missing") is None
    assert scheduler.wait("missing", timeout_sec=0.01) is False
    scheduler.shutdown()
