import sys
import threading


class ConsoleReporter:
    """Thread-safe console output shared by the phase loops and pool workers.

    Per-operation lines and summaries go to stdout, errors to stderr.
    """

    def __init__(self, quiet: bool = False, out=None, err=None) -> None:
        self.quiet = quiet
        self._out = out if out is not None else sys.stdout
        self._err = err if err is not None else sys.stderr
        self._lock = threading.Lock()

    def _write(self, stream, line: str) -> None:
        with self._lock:
            print(line, file=stream, flush=True)

    def job_done(self, job) -> None:
        if not self.quiet:
            self._write(self._out, f"{job.verb} {job.key}")

    def info(self, line: str) -> None:
        self._write(self._out, line)

    def phase_done(self, report) -> None:
        self._write(self._out, report.summary_line())

    def error(self, line: str) -> None:
        self._write(self._err, line)
