"""
Run scheduler: verify every entry point and aggregate the outcome.

The aggregate is deliberately small: pass/fail counts plus one failing
status. Per-entry results are only printed. When several entries fail with
different statuses, whichever failure completed last is reported. In
parallel mode that depends on timing.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Optional, Sequence

from ..pipeline.entries import EntryPoint
from ..utils.logging import get_logger
from .status import Status

logger = get_logger("cargo_verify.verification.scheduler")

VerifyFn = Callable[[EntryPoint], Status]


@dataclass
class RunSummary:
    """Aggregate result of a run."""
    passes: int = 0
    fails: int = 0
    failure: Optional[Status] = None

    @property
    def status(self) -> Status:
        """A failing status if anything failed, else Verified."""
        return self.failure if self.failure is not None else Status.VERIFIED

    @property
    def total(self) -> int:
        return self.passes + self.fails

    def summary(self) -> str:
        msg = "ok" if self.failure is None else str(self.failure)
        return f"test result: {msg}. {self.passes} passed; {self.fails} failed"


class RunScheduler:
    """
    Runs a verification function over entry points.

    jobs == 1 runs the entries in order. Larger values use a thread pool.
    Each worker blocks on its own backend subprocess.
    """

    def __init__(self, verify: VerifyFn, jobs: int = 1, echo: Callable[[str], None] = print):
        if jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {jobs}")
        self.verify = verify
        self.jobs = jobs
        self.echo = echo
        self._lock = Lock()

    def _verify_one(self, entry: EntryPoint) -> Status:
        """Run one entry. Failures to run at all become Unknown."""
        try:
            return self.verify(entry)
        except Exception as e:
            logger.error("Verification of %s failed to run: %s", entry.name, e)
            logger.debug("Verification of %s failed", entry.name, exc_info=True)
            return Status.UNKNOWN

    def _record(self, summary: RunSummary, entry: EntryPoint, status: Status) -> None:
        with self._lock:
            if status.is_success:
                self.echo(f"test {entry.name} ... ok")
                summary.passes += 1
            else:
                self.echo(f"test {entry.name} ... {status}")
                summary.fails += 1
                summary.failure = status

    def run(self, entries: Sequence[EntryPoint]) -> RunSummary:
        logger.info("Running %d test(s)", len(entries))
        summary = RunSummary()

        if self.jobs == 1 or len(entries) <= 1:
            for entry in entries:
                self._record(summary, entry, self._verify_one(entry))
        else:
            with ThreadPoolExecutor(max_workers=self.jobs) as executor:
                futures = {executor.submit(self._verify_one, e): e for e in entries}
                for future in as_completed(futures):
                    self._record(summary, futures[future], future.result())

        self.echo(summary.summary())
        return summary
