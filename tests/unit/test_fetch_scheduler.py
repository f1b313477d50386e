"""
Unit tests for the fetch scheduler.
"""

import threading
import time

import pytest

from pagesync.runner.fetch_scheduler import DEFAULT_MAX_CONCURRENT, FetchScheduler


class TestFetchScheduler:

    def test_default_limit(self):
        scheduler = FetchScheduler()
        try:
            assert scheduler.max_concurrent == DEFAULT_MAX_CONCURRENT == 100
        finally:
            scheduler.close()

    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError):
            FetchScheduler(max_concurrent=0)

    def test_returns_task_results(self):
        scheduler = FetchScheduler(max_concurrent=2)
        try:
            futures = [scheduler.schedule(lambda n=n: n * n) for n in range(5)]
            assert [f.result(timeout=5) for f in futures] == [0, 1, 4, 9, 16]
            assert scheduler.completed == 5
        finally:
            scheduler.close()

    def test_task_exception_is_isolated(self):
        scheduler = FetchScheduler(max_concurrent=2)

        def boom():
            raise RuntimeError("boom")

        try:
            bad = scheduler.schedule(boom)
            good = scheduler.schedule(lambda: "ok")
            with pytest.raises(RuntimeError):
                bad.result(timeout=5)
            assert good.result(timeout=5) == "ok"
        finally:
            scheduler.close()

    @pytest.mark.slow
    def test_limit_is_enforced(self):
        scheduler = FetchScheduler(max_concurrent=2)
        lock = threading.Lock()
        limit_reached = threading.Event()
        running = [0]
        peak = [0]

        def task():
            with lock:
                running[0] += 1
                peak[0] = max(peak[0], running[0])
                if running[0] == 2:
                    limit_reached.set()
            limit_reached.wait(5)
            time.sleep(0.01)
            with lock:
                running[0] -= 1

        try:
            futures = [scheduler.schedule(task) for _ in range(10)]
            for f in futures:
                f.result(timeout=10)
        finally:
            scheduler.close()

        assert peak[0] == 2
        assert scheduler.peak_in_flight == 2
        assert scheduler.in_flight == 0

    def test_queued_tasks_start_in_submission_order(self):
        scheduler = FetchScheduler(max_concurrent=1)
        started = []

        try:
            futures = [scheduler.schedule(lambda n=n: started.append(n)) for n in range(10)]
            for f in futures:
                f.result(timeout=5)
        finally:
            scheduler.close()

        assert started == list(range(10))

    def test_cancel_stops_queued_tasks_but_not_in_flight(self):
        scheduler = FetchScheduler(max_concurrent=1)
        started = threading.Event()
        release = threading.Event()

        def blocking():
            started.set()
            release.wait(5)
            return "finished"

        first = scheduler.schedule(blocking)
        assert started.wait(5)
        queued = [scheduler.schedule(lambda: "never") for _ in range(5)]

        scheduler.cancel()
        release.set()

        assert first.result(timeout=5) == "finished"
        assert all(f.cancelled() for f in queued)
        assert scheduler.cancelled

        with pytest.raises(RuntimeError):
            scheduler.schedule(lambda: None)

        scheduler.close()

    def test_cancel_is_idempotent(self):
        scheduler = FetchScheduler(max_concurrent=1)
        scheduler.cancel()
        scheduler.cancel()
        scheduler.close()
        assert scheduler.cancelled
