"""Bounded-concurrency worker pool.

A fixed set of threads drains one bounded queue. The producer bumps a
``CompletionCounter`` before every enqueue and workers release it after every
job, so ``wait()`` returns only once everything submitted so far has finished.
Workers never raise: failures are collected and handed back from ``wait()``.
"""
import queue
import threading
from typing import List, Optional

from .jobs import Job, JobFailure

_STOP = object()


class CompletionCounter:
    """Counting barrier: ``add`` per job, ``done`` per finished job, ``wait`` for zero."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    @property
    def pending(self) -> int:
        with self._cond:
            return self._count

    def add(self, n: int = 1) -> None:
        with self._cond:
            self._count += n

    def done(self) -> None:
        with self._cond:
            if self._count <= 0:
                raise ValueError("CompletionCounter.done() called more times than add()")
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout=timeout)


class WorkerPool:
    def __init__(self, store, size: int, reporter=None, fail_fast: bool = True) -> None:
        if int(size) < 1:
            raise ValueError(f"pool size must be at least 1, got {size}")
        self.size = int(size)
        self._store = store
        self._reporter = reporter
        self._fail_fast = fail_fast
        self._queue: "queue.Queue" = queue.Queue(maxsize=self.size)
        self._counter = CompletionCounter()
        self._threads: List[threading.Thread] = []
        self._aborted = threading.Event()
        self._lock = threading.Lock()
        self._failures: List[JobFailure] = []
        self._completed = 0
        self._skipped = 0

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    @property
    def skipped(self) -> int:
        with self._lock:
            return self._skipped

    @property
    def pending(self) -> int:
        return self._counter.pending

    def start(self) -> "WorkerPool":
        if self._threads:
            raise RuntimeError("worker pool already started")
        for i in range(self.size):
            t = threading.Thread(target=self._work, name=f"bucket-cycle-worker-{i}", daemon=True)
            t.start()
            self._threads.append(t)
        return self

    def submit(self, job: Job) -> bool:
        """Enqueue a job, blocking while the queue is full.

        Returns False (and enqueues nothing) once the pool has aborted.
        """
        if self._aborted.is_set():
            return False
        self._counter.add()
        self._queue.put(job)
        return True

    def wait(self, timeout: Optional[float] = None) -> List[JobFailure]:
        """Block until every submitted job has finished; return new failures."""
        if not self._counter.wait(timeout):
            raise TimeoutError(f"{self._counter.pending} job(s) still pending")
        with self._lock:
            failures, self._failures = self._failures, []
        return failures

    def close(self) -> None:
        for _ in self._threads:
            self._queue.put(_STOP)
        for t in self._threads:
            t.join()
        self._threads = []

    def __enter__(self) -> "WorkerPool":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            # Let workers discard whatever is still queued
            self._aborted.set()
        self.close()

    def _work(self) -> None:
        while True:
            job = self._queue.get()
            if job is _STOP:
                return
            try:
                self._run_one(job)
            finally:
                self._counter.done()

    def _run_one(self, job: Job) -> None:
        if self._aborted.is_set():
            with self._lock:
                self._skipped += 1
            return
        # A reporter error (e.g. BrokenPipeError on stdout) counts as a job failure
        try:
            job.execute(self._store)
            if self._reporter is not None:
                self._reporter.job_done(job)
        except Exception as e:
            with self._lock:
                self._failures.append(JobFailure(job=job, error=e))
            if self._fail_fast:
                self._aborted.set()
            return
        with self._lock:
            self._completed += 1
