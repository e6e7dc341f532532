"""Runs the upload phase, then drains the bucket."""
from dataclasses import dataclass, field
from typing import List, Optional

from botocore.exceptions import BotoCoreError

from .collector import collect
from .config import Settings
from .console import ConsoleReporter
from .errors import ConfigError, JobError
from .phases import DrainPhase, PhaseReport, run_upload_phase
from .pool import WorkerPool
from .store import S3ObjectStore, make_s3_client


@dataclass
class RunReport:
    upload: Optional[PhaseReport] = None
    drain: List[PhaseReport] = field(default_factory=list)

    @property
    def reports(self) -> List[PhaseReport]:
        return ([self.upload] if self.upload else []) + list(self.drain)

    @property
    def deleted(self) -> int:
        return self.drain[-1].total if self.drain else 0


class Orchestrator:
    def __init__(self, settings: Settings, store, reporter: Optional[ConsoleReporter] = None) -> None:
        self.settings = settings
        self.store = store
        self.reporter = reporter or ConsoleReporter()

    @classmethod
    def from_settings(cls, settings: Settings, reporter: Optional[ConsoleReporter] = None) -> "Orchestrator":
        try:
            client = make_s3_client(
                region=settings.region,
                profile=settings.profile,
                endpoint_url=settings.endpoint_url,
                use_path_style=settings.use_path_style,
                credentials=settings.credentials,
                max_pool_connections=settings.pool_size,
            )
        except BotoCoreError as e:
            raise ConfigError(f"cannot create S3 client: {e}") from e
        return cls(settings, S3ObjectStore(client, page_size=settings.page_size), reporter)

    def _pool(self) -> WorkerPool:
        return WorkerPool(
            self.store,
            size=self.settings.pool_size,
            reporter=self.reporter,
            fail_fast=self.settings.fail_fast,
        )

    def upload(self) -> PhaseReport:
        jobs = collect(self.settings.source_dir, self.settings.bucket)
        with self._pool() as pool:
            report = run_upload_phase(pool, jobs, self.reporter)
        if not report.ok:
            raise JobError("upload", report.failures)
        return report

    def drain(self) -> List[PhaseReport]:
        with self._pool() as pool:
            phase = DrainPhase(
                self.store,
                pool,
                self.settings.target_drain_bucket,
                reporter=self.reporter,
                exhaustive=self.settings.exhaustive_listing,
                max_iterations=self.settings.max_drain_iterations,
            )
            reports = phase.run()
        if reports and not reports[-1].ok:
            raise JobError("drain", reports[-1].failures)
        return reports

    def run(self) -> RunReport:
        result = RunReport()
        if not self.settings.skip_upload:
            result.upload = self.upload()
        if not self.settings.skip_drain:
            result.drain = self.drain()
        return result
