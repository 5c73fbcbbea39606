"""
KLEE backend.

Runs KLEE on the bitcode file, classifies its stderr and optionally replays
the test inputs KLEE generated.
"""

import re
from pathlib import Path
from typing import List

from ..errors import ReplayError
from ..pipeline.entries import EntryPoint
from ..utils.logging import get_logger
from ..verification.replay import replay_input
from ..verification.status import Status
from .base import VerificationBackend
from .classifier import (
    DONE_STATS,
    EXPECTED_PANIC,
    BackendTable,
    Classification,
    Outcome,
    Pattern,
    Rule,
)

logger = get_logger("cargo_verify.backends.klee")

TEST_ERR = re.compile(r"test.*\.err$")
TEST_KTEST = re.compile(r"test.*\.ktest$")

KLEE_TABLE = BackendTable(
    name="KLEE",
    status_rules=[
        Rule(Pattern(prefix="KLEE: HaltTimer invoked"), Status.TIMEOUT),
        Rule(Pattern(prefix="KLEE: halting execution, dumping remaining states"), Status.TIMEOUT),
        Rule(Pattern(prefix="KLEE: ERROR: Could not link"), Status.UNKNOWN),
        Rule(Pattern(prefix="KLEE: ERROR: Unable to load symbol"), Status.UNKNOWN),
        Rule(Pattern(prefix="KLEE: ERROR:", contains="unreachable"), Status.REACHABLE),
        Rule(Pattern(prefix="KLEE: ERROR:", contains="overflow"), Status.OVERFLOW),
        Rule(Pattern(prefix="KLEE: ERROR:"), Status.ERROR),
        # don't confuse this line with an error!
        Rule(Pattern(prefix="VERIFIER_EXPECT:"), Outcome.SKIP),
        Rule(EXPECTED_PANIC, Status.VERIFIED),
        Rule(Pattern(contains="assertion failed"), Status.ERROR),
        Rule(Pattern(contains="verification failed"), Status.ERROR),
        Rule(Pattern(contains="with overflow"), Status.OVERFLOW),
        Rule(Pattern(contains="note: run with `RUST_BACKTRACE=1`"), Status.ERROR),
        Rule(Pattern(contains="KLEE: done:"), Outcome.DONE),
    ],
    importance_rules=[
        Rule(Pattern(prefix="VERIFIER_EXPECT:"), 4),
        # low priority because we report it directly
        Rule(EXPECTED_PANIC, 5),
        Rule(Pattern(contains="assertion failed"), 1),
        Rule(Pattern(contains="verification failed"), 1),
        Rule(Pattern(contains="with overflow"), 1),
        Rule(Pattern(prefix="KLEE: ERROR: Could not link"), -1),
        Rule(Pattern(prefix="KLEE: ERROR: Unable to load symbol"), -1),
        Rule(Pattern(prefix="KLEE: ERROR:"), 2),
        Rule(Pattern(prefix="warning: Linking two modules of different data layouts"), 4),
        Rule(Pattern(contains="KLEE: WARNING:"), 4),
        Rule(Pattern(contains="KLEE: WARNING ONCE:"), 4),
        Rule(Pattern(prefix="KLEE: output directory"), 5),
        Rule(Pattern(prefix="KLEE: Using"), 5),
        Rule(Pattern(prefix="KLEE: NOTE: Using POSIX model"), 5),
        Rule(Pattern(prefix="KLEE: done:"), 5),
        Rule(Pattern(prefix="KLEE: HaltTimer invoked"), 5),
        Rule(Pattern(prefix="KLEE: halting execution, dumping remaining states"), 5),
        Rule(Pattern(prefix="KLEE: NOTE: now ignoring this error at this location"), 5),
        # Uncategorized KLEE output
        Rule(Pattern(prefix="KLEE:"), 0),
    ],
    # Remaining output is probably from the application, stack dumps, etc.
    default_importance=3,
    stats_pattern=re.compile(r"^KLEE: " + DONE_STATS.pattern),
)


def _matching_files(directory: Path, pattern: re.Pattern) -> List[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file() and pattern.match(p.name))


def failing_tests(kleedir: Path) -> List[Path]:
    """`{kleedir}/test*.err`"""
    return _matching_files(kleedir, TEST_ERR)


def replay_inputs(kleedir: Path, replay: int) -> List[Path]:
    """
    Test inputs to replay.

    Level 1 replays failing inputs only. `test000001.abort.err` maps to
    `test000001.ktest`. Level 2 and above replays every input.
    """
    if replay > 1:
        return _matching_files(kleedir, TEST_KTEST)
    return sorted(p.with_suffix("").with_suffix(".ktest") for p in failing_tests(kleedir))


class KleeBackend(VerificationBackend):
    """Verification via KLEE symbolic execution."""

    name = "KLEE"
    executable = "klee"
    output_prefix = "kleeout"
    table = KLEE_TABLE
    # KLEE may print bytes that are not UTF-8
    encoding = "latin-1"

    def command(self, entry: EntryPoint, bcfile: Path, outdir: Path) -> List[str]:
        return [
            self.executable,
            "--exit-on-error",
            "--entry-point", entry.symbol,
            "--libc=klee",
            "--silent-klee-assume",
            "--output-dir", str(outdir),
            "--disable-verify",  # workaround https://github.com/klee/klee/issues/937
            *self.opt.backend_flag_list(),
            str(bcfile),
            *self.opt.args,
        ]

    def after_run(self, entry: EntryPoint, outdir: Path, classification: Classification) -> None:
        stats = classification.stats
        if stats:
            logger.warning("     %s: %s paths", entry.name, stats.get("completed paths", "?"))
            logger.info("     %s: %s", entry.name, stats)

        logger.info("      Failing test: %s", [str(p) for p in failing_tests(outdir)])

        if self.opt.replay > 0:
            for ktest in replay_inputs(outdir, self.opt.replay):
                self.echo(f"    Test input {ktest}")
                try:
                    replay_input(self.opt, entry.name, ktest, echo=self.echo)
                except ReplayError as e:
                    logger.warning("Replay of %s failed: %s", ktest, e)
