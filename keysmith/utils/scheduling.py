"""
Background task scheduling on a shared worker pool.

A single timer thread keeps a heap of due times and hands due tasks to a
``ThreadPoolExecutor``. Repeating tasks use fixed-delay semantics: the next
run is scheduled only after the current one finishes, so a slow task never
overlaps with itself.

Every scheduled task is represented by a ``TaskHandle``. Cancelling a handle
is idempotent and only the first call reports success, which lets owners
release it from several teardown paths without double bookkeeping.

Example:
    >>> scheduler = get_default_scheduler()
    >>> handle = scheduler.schedule_with_fixed_delay(holder.refresh, interval_seconds=2880)
    >>> ...
    >>> handle.cancel()
    True
"""

import heapq
import itertools
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import structlog

log = structlog.get_logger(__name__)


class TaskHandle:
    """Handle of a scheduled task."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self.runs = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> bool:
        """Cancel the task. Returns True only for the call that cancelled it."""
        with self._lock:
            if self._cancelled.is_set():
                return False
            self._cancelled.set()
        log.debug("scheduled_task_cancelled", task=self.name)
        return True


class _ScheduledTask:
    def __init__(self, task: Callable[[], Any], interval: float | None, handle: TaskHandle) -> None:
        self.task = task
        self.interval = interval
        self.handle = handle


class BackgroundScheduler:
    """Run one-shot and repeating tasks on a shared pool of worker threads.

    Args:
        max_workers: Size of the worker pool
        name: Prefix for thread names

    Thread Safety:
        All public methods may be called from any thread.
    """

    def __init__(self, max_workers: int = 4, name: str = "keysmith-scheduler") -> None:
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._condition = threading.Condition()
        self._queue: list[tuple[float, int, _ScheduledTask]] = []
        self._counter = itertools.count()
        self._shutdown = False
        self._thread = threading.Thread(target=self._run, name=f"{name}-timer", daemon=True)
        self._thread.start()

    def schedule(self, task: Callable[[], Any], delay_seconds: float, name: str | None = None) -> TaskHandle:
        """Run ``task`` once after ``delay_seconds``."""
        handle = TaskHandle(name or getattr(task, "__name__", "task"))
        self._enqueue(_ScheduledTask(task, None, handle), delay_seconds)
        return handle

    def schedule_with_fixed_delay(
        self,
        task: Callable[[], Any],
        interval_seconds: float,
        initial_delay_seconds: float | None = None,
        name: str | None = None,
    ) -> TaskHandle:
        """Run ``task`` repeatedly, ``interval_seconds`` after each completion.

        The first run happens after ``initial_delay_seconds`` (defaults to
        the interval). Exceptions raised by the task are logged and do not
        stop the schedule.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        handle = TaskHandle(name or getattr(task, "__name__", "task"))
        delay = interval_seconds if initial_delay_seconds is None else initial_delay_seconds
        self._enqueue(_ScheduledTask(task, interval_seconds, handle), delay)
        log.debug("scheduled_task_registered", task=handle.name, interval=interval_seconds)
        return handle

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def shutdown(self, wait: bool = True) -> None:
        """Stop the timer thread and the worker pool. Pending tasks are dropped."""
        with self._condition:
            if self._shutdown:
                return
            self._shutdown = True
            self._queue.clear()
            self._condition.notify_all()
        self._thread.join(timeout=5)
        self._executor.shutdown(wait=wait)
        log.debug("scheduler_shutdown", scheduler=self.name)

    def __enter__(self) -> "BackgroundScheduler":
        return self

    def __exit__(self, *args: Any) -> None:
        self.shutdown()

    def _enqueue(self, entry: _ScheduledTask, delay: float) -> None:
        with self._condition:
            if self._shutdown:
                raise RuntimeError(f"Scheduler {self.name} is shut down")
            due = time.monotonic() + max(delay, 0.0)
            heapq.heappush(self._queue, (due, next(self._counter), entry))
            self._condition.notify_all()

    def _run(self) -> None:
        while True:
            with self._condition:
                if self._shutdown:
                    return
                if not self._queue:
                    self._condition.wait()
                    continue
                due, _, entry = self._queue[0]
                remaining = due - time.monotonic()
                if remaining > 0:
                    self._condition.wait(remaining)
                    continue
                heapq.heappop(self._queue)

            if entry.handle.cancelled:
                continue
            try:
                self._executor.submit(self._execute, entry)
            except RuntimeError:
                # executor already shut down
                return

    def _execute(self, entry: _ScheduledTask) -> None:
        if entry.handle.cancelled:
            return
        try:
            entry.task()
        except Exception as e:
            log.error("scheduled_task_failed", task=entry.handle.name, error=str(e), exc_info=True)
        finally:
            entry.handle.runs += 1

        if entry.interval is not None and not entry.handle.cancelled:
            try:
                self._enqueue(entry, entry.interval)
            except RuntimeError:
                log.debug("scheduled_task_dropped", task=entry.handle.name, reason="scheduler shut down")


_default_scheduler: BackgroundScheduler | None = None
_default_lock = threading.Lock()


def get_default_scheduler(max_workers: int = 4) -> BackgroundScheduler:
    """Get the process-wide shared scheduler, creating it on first use."""
    global _default_scheduler
    with _default_lock:
        if _default_scheduler is None or _default_scheduler.is_shutdown:
            _default_scheduler = BackgroundScheduler(max_workers=max_workers)
            log.info("default_scheduler_created", max_workers=max_workers)
        return _default_scheduler


def shutdown_default_scheduler() -> None:
    """Shut down the shared scheduler if it was ever created."""
    global _default_scheduler
    with _default_lock:
        if _default_scheduler is not None:
            _default_scheduler.shutdown()
            _default_scheduler = None
