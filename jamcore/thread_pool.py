"""A small worker pool for deferred, non-realtime tasks."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable

from .logger import LogLevel, check, log_message

TaskCallback = Callable[[Any], None]


@dataclass(frozen=True)
class TaskInfo:
    """A callback together with the argument it is called with."""

    callback: TaskCallback
    data: Any = None


class ThreadPool:
    """Fixed-size pool whose workers run deferred tasks, newest first.

    Deferred tasks wait until :meth:`flush_tasks` or :meth:`stop` wakes the
    workers; stopping drains every task still pending.
    """

    def __init__(self, num_threads: int, capacity: int) -> None:
        log_message(
            LogLevel.INFO,
            "Creating Thread Pool with %d threads and capacity of %d tasks",
            num_threads,
            capacity,
        )
        check(num_threads > 0, "numThreads must be > 0")
        check(capacity > 0, "Job queue capacity must be > 0")
        self.num_threads = num_threads
        self.capacity = capacity
        self._tasks: list[TaskInfo] = []
        self._threads: list[threading.Thread] = []
        self._running = True
        self._cond = threading.Condition()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending_tasks(self) -> int:
        with self._cond:
            return len(self._tasks)

    def __enter__(self) -> "ThreadPool":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
        self.close()

    def _worker(self) -> None:
        while True:
            with self._cond:
                while not self._tasks and self._running:
                    self._cond.wait()
                if not self._tasks:
                    return
                task = self._tasks.pop()
            try:
                task.callback(task.data)
            except Exception as error:  # keep the worker alive
                log_message(LogLevel.ERROR, "Deferred task failed: %r", error)

    def start(self) -> None:
        """Launch the worker threads."""
        log_message(LogLevel.INFO, "Starting Thread Pool")
        for _ in range(self.num_threads):
            thread = threading.Thread(target=self._worker, daemon=True)
            thread.start()
            self._threads.append(thread)

    def stop(self) -> None:
        """Stop accepting waits, run what is pending and join the workers."""
        log_message(LogLevel.INFO, "Stopping Thread Pool")
        with self._cond:
            self._running = False
            self._cond.notify_all()
        for thread in self._threads:
            thread.join()
        self._threads.clear()

    def close(self) -> None:
        """Drop any pending tasks and release the workers."""
        log_message(LogLevel.INFO, "Deinitializing Thread Pool")
        with self._cond:
            self._tasks.clear()
            self._threads.clear()
            self.num_threads = 0

    def defer_task(self, callback: TaskCallback, data: Any = None) -> None:
        """Queue ``callback(data)`` to run on a worker after the next flush."""
        with self._cond:
            check(len(self._tasks) < self.capacity, "Number of tasks reached capacity")
            self._tasks.append(TaskInfo(callback, data))

    def flush_tasks(self) -> None:
        """Wake the workers if any task is pending."""
        with self._cond:
            if self._tasks:
                self._cond.notify_all()