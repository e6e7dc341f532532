import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from .errors import DrainError
from .jobs import DeleteJob, JobFailure, UploadJob
from .store import ListingPage


@dataclass
class PhaseReport:
    phase: str
    count: int
    total: int
    elapsed_sec: float
    iteration: int = 1
    skipped: int = 0
    failures: List[JobFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def files_per_sec(self) -> float:
        return self.total / self.elapsed_sec if self.elapsed_sec > 0 else 0.0

    def summary_line(self) -> str:
        verb = "Uploaded" if self.phase == "upload" else "Deleted"
        return f"{verb} {self.total} files [concurrently] in {self.elapsed_sec:.2f} seconds"


def run_upload_phase(pool, jobs: Iterable[UploadJob], reporter=None) -> PhaseReport:
    """Submit every upload job and block until all of them have finished."""
    start = time.perf_counter()
    submitted = 0
    for job in jobs:
        if not pool.submit(job):
            break
        submitted += 1
    failures = pool.wait()
    completed = submitted - len(failures) - pool.skipped
    report = PhaseReport(
        phase="upload",
        count=completed,
        total=completed,
        elapsed_sec=time.perf_counter() - start,
        skipped=pool.skipped,
        failures=failures,
    )
    if reporter is not None and report.ok:
        reporter.phase_done(report)
    return report


class DrainState(Enum):
    LISTING = "listing"
    ENQUEUEING = "enqueueing"
    WAITING = "waiting"
    DONE = "done"


class DrainPhase:
    """
    Empty a bucket by listing, deleting what was listed, and listing again.

    A single listing call may return only part of the bucket, so the loop only
    ends after a listing that comes back empty. With ``exhaustive=True`` each
    iteration follows continuation tokens and enumerates the whole bucket
    before deleting; the closing empty listing is still required.
    """

    def __init__(
        self,
        store,
        pool,
        bucket: str,
        reporter=None,
        exhaustive: bool = False,
        max_iterations: Optional[int] = None,
    ) -> None:
        self._store = store
        self._pool = pool
        self.bucket = bucket
        self._reporter = reporter
        self._exhaustive = exhaustive
        self._max_iterations = max_iterations
        self.state = DrainState.LISTING
        self.list_calls = 0
        self.deleted = 0
        self.reports: List[PhaseReport] = []

    def _list(self) -> List[str]:
        page: ListingPage = self._store.list(self.bucket)
        self.list_calls += 1
        keys = list(page.keys)
        while self._exhaustive and page.next_token:
            page = self._store.list(self.bucket, continuation_token=page.next_token)
            self.list_calls += 1
            keys.extend(page.keys)
        return keys

    def run(self) -> List[PhaseReport]:
        start = time.perf_counter()
        iteration = 0
        keys: List[str] = []
        submitted = 0

        while self.state is not DrainState.DONE:
            if self.state is DrainState.LISTING:
                keys = self._list()
                if not keys:
                    self.state = DrainState.DONE
                    continue
                iteration += 1
                if self._max_iterations is not None and iteration > self._max_iterations:
                    raise DrainError(
                        f"s3://{self.bucket} still not empty after {self._max_iterations} drain iterations"
                    )
                self.state = DrainState.ENQUEUEING

            elif self.state is DrainState.ENQUEUEING:
                submitted = 0
                for key in keys:
                    if not self._pool.submit(DeleteJob(bucket=self.bucket, key=key)):
                        break
                    submitted += 1
                self.state = DrainState.WAITING

            elif self.state is DrainState.WAITING:
                skipped_before = sum(r.skipped for r in self.reports)
                failures = self._pool.wait()
                skipped = self._pool.skipped - skipped_before
                count = submitted - len(failures) - skipped
                self.deleted += count
                report = PhaseReport(
                    phase="drain",
                    count=count,
                    total=self.deleted,
                    elapsed_sec=time.perf_counter() - start,
                    iteration=iteration,
                    skipped=skipped,
                    failures=failures,
                )
                self.reports.append(report)
                if not report.ok:
                    # A failed iteration ends the drain; the caller decides what to do
                    return self.reports
                if self._reporter is not None:
                    self._reporter.phase_done(report)
                self.state = DrainState.LISTING

        return self.reports
