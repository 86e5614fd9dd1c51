import threading
import time
from datetime import datetime, timezone

import pytest

from trellisweb.jobs import UNNAMED, Job, JobRunner


class _Tracker:
    def __init__(self, barrier=None):
        self._lock = threading.Lock()
        self.current = 0
        self.peak = 0
        self.calls = 0
        self.barrier = barrier

    def __call__(self):
        with self._lock:
            self.current += 1
            self.calls += 1
            self.peak = max(self.peak, self.current)
        try:
            if self.barrier is not None:
                self.barrier.wait()
            else:
                time.sleep(0.05)
        finally:
            with self._lock:
                self.current -= 1


class Cleanup:
    def __init__(self):
        self.count = 0

    def run(self):
        self.count += 1


def test_function_job_is_unnamed():
    assert Job(lambda: None).name == UNNAMED
    assert UNNAMED == "(unnamed)"


def test_object_job_named_after_class_and_runs():
    inner = Cleanup()
    job = Job(inner)
    job.run()
    assert job.name == "Cleanup"
    assert inner.count == 1


def test_explicit_name_wins():
    assert Job(lambda: None, name="nightly").name == "nightly"


def test_non_callable_rejected():
    with pytest.raises(TypeError):
        Job(42)


def test_status_running_during_run_and_idle_after():
    seen = []
    job = None

    def work():
        seen.append(job.status())

    job = Job(work)
    assert job.status() == "IDLE"
    job.run()
    assert seen == ["RUNNING"]
    assert job.status() == "IDLE"


def test_exception_is_swallowed_and_status_reset():
    def boom():
        raise RuntimeError("boom")

    job = Job(boom)
    job.run()
    assert job.status() == "IDLE"


def test_job_does_not_run_concurrently_with_itself():
    tracker = _Tracker()
    job = Job(tracker)
    threads = [threading.Thread(target=job.run) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)
    assert tracker.calls == 2
    assert tracker.peak == 1


def test_self_concurrent_job_runs_in_parallel():
    tracker = _Tracker(threading.Barrier(2, timeout=2))
    runner = JobRunner(pool_size=0, self_concurrent=True)
    job = Job(tracker, self_concurrent=True)
    threads = [runner.now(job) for _ in range(2)]
    for thread in threads:
        thread.join(5)
    assert tracker.calls == 2
    assert tracker.peak == 2


def test_pool_limits_concurrent_jobs():
    tracker = _Tracker()
    runner = JobRunner(pool_size=1, self_concurrent=True)
    threads = [runner.now(tracker) for _ in range(2)]
    for thread in threads:
        thread.join(5)
    assert tracker.calls == 2
    assert tracker.peak == 1


def test_after_runs_once_after_delay():
    done = threading.Event()
    runner = JobRunner()
    start = time.monotonic()
    timer = runner.after(0.05, done.set)
    assert done.wait(2)
    timer.join(2)
    assert time.monotonic() - start >= 0.04


def test_every_runs_repeatedly_until_stopped():
    calls = []
    enough = threading.Event()

    def tick():
        calls.append(1)
        if len(calls) >= 2:
            enough.set()

    runner = JobRunner()
    runner.every(0.05, tick)
    runner.start()
    try:
        assert enough.wait(3)
    finally:
        runner.stop()
    entry = runner.entries()[0]
    assert entry.prev is not None and entry.prev <= entry.next
    assert len(calls) >= 2


def test_entries_sorted_by_next_run():
    runner = JobRunner()
    runner.every(100, Cleanup())
    runner.every(10, lambda: None)
    entries = runner.entries()
    assert [e.job.name for e in entries] == [UNNAMED, "Cleanup"]
    assert entries[0].next > datetime.now(timezone.utc)
    assert entries[0].prev is None


def test_every_rejects_non_positive_interval():
    runner = JobRunner()
    with pytest.raises(ValueError):
        runner.every(0, lambda: None)
    assert runner.entries() == []


def test_runner_as_context_manager_stops_cleanly():
    ran = threading.Event()
    with JobRunner() as runner:
        runner.every(0.02, ran.set)
        assert ran.wait(2)
    runner.stop()
    assert len(runner.entries()) == 1
    assert runner.entries()[0].job.status() in {"IDLE", "RUNNING"}