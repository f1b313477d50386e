"""
Global bounded-concurrency task scheduler for page fetches.

Wraps a single ThreadPoolExecutor so every caller shares one limit on the
number of tasks running at once. The executor's work queue is FIFO, so
excess tasks start in submission order as slots free up.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_CONCURRENT = 100


class FetchScheduler:
    """
    Runs tasks with at most ``max_concurrent`` in flight.

    ``cancel()`` stops admitting queued tasks; tasks that already started
    run to completion.
    """

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT, name: str = "page-fetch"):
        """
        Initialize the scheduler.

        Args:
            max_concurrent: Maximum number of tasks running at once
            name: Thread name prefix for worker threads
        """
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1: {max_concurrent}")

        self.max_concurrent = max_concurrent
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent,
            thread_name_prefix=name,
        )
        self._lock = threading.Lock()
        self._cancelled = False
        self.in_flight = 0
        self.peak_in_flight = 0
        self.completed = 0

    def schedule(self, task: Callable[[], T]) -> "Future[T]":
        """
        Queue a task.

        Returns:
            Future resolving to the task's result

        Raises:
            RuntimeError if the scheduler was cancelled
        """
        with self._lock:
            if self._cancelled:
                raise RuntimeError("FetchScheduler has been cancelled")
            return self._executor.submit(self._run, task)

    def _run(self, task: Callable[[], T]) -> T:
        with self._lock:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            return task()
        finally:
            with self._lock:
                self.in_flight -= 1
                self.completed += 1

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop admitting queued tasks. In-flight tasks are not interrupted."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
        logger.info("Cancelling fetch scheduler; queued tasks will not start")
        self._executor.shutdown(wait=False, cancel_futures=True)

    def close(self) -> None:
        """Cancel queued tasks and wait for in-flight ones to finish."""
        self.cancel()
        self._executor.shutdown(wait=True)
        logger.debug(
            f"Fetch scheduler closed: {self.completed} tasks completed, "
            f"peak {self.peak_in_flight} in flight"
        )
