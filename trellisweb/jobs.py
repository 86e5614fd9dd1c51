"""Running jobs asynchronously: now, after a delay, or at a fixed interval.

Jobs are protected against exceptions (they are logged, not raised), may be
limited in how many run at once, and by default one job never runs
concurrently with itself: an overlapping run waits for the previous one.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

log = logging.getLogger(__name__)

UNNAMED = "(unnamed)"
DEFAULT_JOB_POOL_SIZE = 10


class Job:
    """A callable, or an object with a run() method, wrapped for safe execution."""

    def __init__(
        self,
        inner: object,
        *,
        name: str | None = None,
        self_concurrent: bool = False,
        permits: threading.Semaphore | None = None,
    ) -> None:
        run = getattr(inner, "run", None)
        if callable(run):
            self._call: Callable[[], object] = run
            default_name = type(inner).__name__
        elif callable(inner):
            self._call = inner
            default_name = UNNAMED
        else:
            raise TypeError(f"job must be callable or have a run() method, got {inner!r}")
        self.name = name or default_name
        self.inner = inner
        self.self_concurrent = self_concurrent
        self.permits = permits
        self._lock = threading.Lock()
        self._running = threading.Event()

    def status(self) -> str:
        """Return "RUNNING" while the job runs, else "IDLE"."""
        return "RUNNING" if self._running.is_set() else "IDLE"

    def run(self) -> None:
        """Run the job once; exceptions are logged and never raised."""
        try:
            with ExitStack() as stack:
                if not self.self_concurrent:
                    stack.enter_context(self._lock)
                if self.permits is not None:
                    stack.enter_context(self.permits)
                self._running.set()
                stack.callback(self._running.clear)
                self._call()
        except Exception:
            log.exception("Job %s failed", self.name)


@dataclass
class _Entry:
    job: Job
    interval: timedelta
    next: datetime
    prev: datetime | None = None


def _seconds(value: float | timedelta) -> float:
    return value.total_seconds() if isinstance(value, timedelta) else float(value)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobRunner:
    """Schedules jobs and runs them on background threads."""

    def __init__(
        self, pool_size: int = DEFAULT_JOB_POOL_SIZE, self_concurrent: bool = False
    ) -> None:
        self.permits = threading.Semaphore(pool_size) if pool_size > 0 else None
        self.self_concurrent = self_concurrent
        self._entries: list[_Entry] = []
        self._cond = threading.Condition()
        self._running = False
        self._thread: threading.Thread | None = None

    def _wrap(self, job: object) -> Job:
        if isinstance(job, Job):
            return job
        return Job(job, self_concurrent=self.self_concurrent, permits=self.permits)

    def every(self, interval: float | timedelta, job: object) -> Job:
        """Run the job repeatedly, interval seconds (or a timedelta) apart."""
        seconds = _seconds(interval)
        if seconds <= 0:
            raise ValueError(f"interval must be positive, got {interval!r}")
        wrapped = self._wrap(job)
        delta = timedelta(seconds=seconds)
        with self._cond:
            self._entries.append(_Entry(wrapped, delta, _now() + delta))
            self._cond.notify_all()
        return wrapped

    def now(self, job: object) -> threading.Thread:
        """Run the job right away on a new thread."""
        thread = threading.Thread(target=self._wrap(job).run, daemon=True)
        thread.start()
        return thread

    def after(self, delay: float | timedelta, job: object) -> threading.Timer:
        """Run the job once, after the given delay."""
        timer = threading.Timer(max(_seconds(delay), 0.0), self._wrap(job).run)
        timer.daemon = True
        timer.start()
        return timer

    def entries(self) -> list[_Entry]:
        """Return the scheduled entries, soonest first."""
        with self._cond:
            return sorted(
                (
                    _Entry(entry.job, entry.interval, entry.next, entry.prev)
                    for entry in self._entries
                ),
                key=lambda entry: entry.next,
            )

    def start(self) -> None:
        """Start running scheduled jobs; does nothing if already started."""
        with self._cond:
            if self._running:
                return
            self._running = True
            self._thread = threading.Thread(target=self._loop, daemon=True)
            self._thread.start()

    def stop(self) -> None:
        """Stop the scheduler; jobs already running are left to finish."""
        with self._cond:
            self._running = False
            self._cond.notify_all()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def __enter__(self) -> JobRunner:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _loop(self) -> None:
        with self._cond:
            while self._running:
                if not self._entries:
                    self._cond.wait()
                    continue
                now = _now()
                soonest = min(entry.next for entry in self._entries)
                wait = (soonest - now).total_seconds()
                if wait > 0:
                    self._cond.wait(wait)
                    continue
                for entry in self._entries:
                    if entry.next <= now:
                        threading.Thread(target=entry.job.run, daemon=True).start()
                        entry.prev = now
                        entry.next = now + entry.interval