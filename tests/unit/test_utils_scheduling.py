"""Tests for keysmith/utils/scheduling.py - shared background scheduler."""

import threading

import pytest

from keysmith.utils.scheduling import (
    BackgroundScheduler,
    TaskHandle,
    get_default_scheduler,
    shutdown_default_scheduler,
)


@pytest.fixture
def scheduler():
    """Scheduler shut down after the test."""
    sched = BackgroundScheduler(max_workers=2, name="test-scheduler")
    yield sched
    sched.shutdown()


class TestTaskHandle:
    """Tests for TaskHandle."""

    def test_cancel_only_succeeds_once(self):
        """Should report success only for the first cancel."""
        handle = TaskHandle("refresh")

        assert handle.cancel() is True
        assert handle.cancel() is False
        assert handle.cancelled


class TestBackgroundScheduler:
    """Tests for BackgroundScheduler."""

    def test_schedule_runs_once(self, scheduler):
        """Should run a one-shot task after its delay."""
        done = threading.Event()
        handle = scheduler.schedule(done.set, delay_seconds=0.01)

        assert done.wait(timeout=5)
        assert handle.name == "set"

    def test_fixed_delay_repeats(self, scheduler):
        """Should run a repeating task until cancelled."""
        runs = []
        third = threading.Event()

        def task():
            runs.append(1)
            if len(runs) >= 3:
                third.set()

        handle = scheduler.schedule_with_fixed_delay(task, interval_seconds=0.01, name="repeat")

        assert third.wait(timeout=5)
        handle.cancel()
        assert len(runs) >= 3

    def test_failing_task_keeps_schedule(self, scheduler):
        """Should log task exceptions and keep running the task."""
        calls = []
        second = threading.Event()

        def task():
            calls.append(1)
            if len(calls) >= 2:
                second.set()
            raise RuntimeError("tick failed")

        handle = scheduler.schedule_with_fixed_delay(task, interval_seconds=0.01)

        assert second.wait(timeout=5)
        handle.cancel()

    def test_cancelled_task_does_not_run(self, scheduler):
        """Should skip a task cancelled before it was due."""
        ran = threading.Event()
        handle = scheduler.schedule(ran.set, delay_seconds=0.2)
        handle.cancel()

        assert not ran.wait(timeout=0.5)

    def test_schedule_after_shutdown_raises(self):
        """Should refuse new tasks once shut down."""
        sched = BackgroundScheduler(max_workers=1)
        sched.shutdown()

        assert sched.is_shutdown
        with pytest.raises(RuntimeError):
            sched.schedule(lambda: None, 0)

    def test_non_positive_interval_rejected(self, scheduler):
        """Should reject a zero interval."""
        with pytest.raises(ValueError):
            scheduler.schedule_with_fixed_delay(lambda: None, interval_seconds=0)

    def test_context_manager_shuts_down(self):
        """Should shut down on exit."""
        with BackgroundScheduler(max_workers=1) as sched:
            pass

        assert sched.is_shutdown


class TestDefaultScheduler:
    """Tests for the process-wide scheduler."""

    def test_shared_until_shutdown(self):
        """Should return the same scheduler until it is shut down."""
        first = get_default_scheduler()
        try:
            assert get_default_scheduler() is first
        finally:
            shutdown_default_scheduler()

        second = get_default_scheduler()
        try:
            assert second is not first
        finally:
            shutdown_default_scheduler()
