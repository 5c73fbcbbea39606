"""
Line-oriented classification of backend output.

Every backend is read the same way:
1. Find the expectation marker printed by `#[should_panic]` tests
2. Find the first line that decides the status
3. Collect `done: <label> = <n>` statistics
4. Rank every line by importance to decide what to echo

Backends differ only in their pattern tables (see BackendTable).
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Pattern as RegexPattern, Sequence, Union

from ..utils.logging import get_logger
from ..verification.status import Status

logger = get_logger("cargo_verify.backends.classifier")

EXPECT_MARKER = "VERIFIER_EXPECT:"
SHOULD_PANIC = "VERIFIER_EXPECT: should_panic"
SHOULD_PANIC_PREFIX = 'VERIFIER_EXPECT: should_panic(expected = "'
SHOULD_PANIC_SUFFIX = '")'

PANIC_MARKER = "panicked at"

DONE_STATS = re.compile(r"done:\s+(.*?)\s*=\s*(\S+)\s*$")


class Outcome(Enum):
    """Rule outcomes that are not a fixed Status."""
    SKIP = "skip"  # the line can never decide the status
    DONE = "done"  # exploration finished: Verified unless a failure was expected


@dataclass(frozen=True)
class Pattern:
    """
    Conditions on one output line. All given conditions must hold.

    `expected_panic` matches a panic that the expectation marker announced.
    """
    prefix: Optional[str] = None
    contains: Optional[str] = None
    exact: Optional[str] = None
    regex: Optional[RegexPattern] = None
    expected_panic: bool = False

    def matches(self, line: str, expect: Optional[str] = None) -> bool:
        if self.exact is not None and line != self.exact:
            return False
        if self.prefix is not None and not line.startswith(self.prefix):
            return False
        if self.contains is not None and self.contains not in line:
            return False
        if self.regex is not None and not self.regex.search(line):
            return False
        if self.expected_panic and not is_expected_panic(line, expect):
            return False
        return True


EXPECTED_PANIC = Pattern(expected_panic=True)


@dataclass(frozen=True)
class Rule:
    pattern: Pattern
    outcome: Union[Status, Outcome, int]


@dataclass(frozen=True)
class BackendTable:
    """Everything that distinguishes one backend's output from another's."""
    name: str
    status_rules: Sequence[Rule]
    importance_rules: Sequence[Rule]
    default_importance: int = 3
    stats_pattern: Optional[RegexPattern] = None


@dataclass
class Classification:
    """Result of reading one backend run."""
    status: Status
    expect: Optional[str] = None
    stats: Dict[str, int] = field(default_factory=dict)


def parse_expectation(line: str) -> Optional[str]:
    """
    Parse an expectation marker line.

    Returns "" for a bare should_panic, the expected substring for
    should_panic(expected = "..."), and None for any other line.
    """
    if line == SHOULD_PANIC:
        return ""
    if line.startswith(SHOULD_PANIC_PREFIX) and line.endswith(SHOULD_PANIC_SUFFIX):
        return line[len(SHOULD_PANIC_PREFIX):len(line) - len(SHOULD_PANIC_SUFFIX)]
    return None


def scan_expectation(lines: Iterable[str]) -> Optional[str]:
    """The last expectation marker wins."""
    expect = None
    for line in lines:
        e = parse_expectation(line)
        if e is not None:
            if e:
                logger.info("Expecting '%s'", e)
            expect = e
    return expect


def is_expected_panic(line: str, expect: Optional[str]) -> bool:
    """True when the line is a panic that the registered expectation allows."""
    if expect is None:
        return False
    return PANIC_MARKER in line and expect in line


def scan_status(lines: Iterable[str], rules: Sequence[Rule], expect: Optional[str]) -> Optional[Status]:
    """Status decided by the first line matching a rule, or None."""
    for line in lines:
        for rule in rules:
            if not rule.pattern.matches(line, expect):
                continue
            if rule.outcome is Outcome.SKIP:
                break
            if rule.outcome is Outcome.DONE:
                return Status.VERIFIED if expect is None else Status.ERROR
            return rule.outcome
    return None


def parse_statistics(lines: Iterable[str], pattern: RegexPattern = DONE_STATS) -> Dict[str, int]:
    """Collect `done: <label> = <n>` counts. Non-integer counts are dropped."""
    stats: Dict[str, int] = {}
    for line in lines:
        m = pattern.search(line)
        if not m:
            continue
        try:
            stats[m.group(1).strip()] = int(m.group(2))
        except ValueError:
            continue
    return stats


def importance(line: str, table: BackendTable, expect: Optional[str]) -> int:
    """
    Rank a line of backend output. Lower is more important.

    -1: script error (always shown)
     0: uncategorized tool output
     1: brief description of error
     2: long details about an error
     3: application output
     4: warnings
     5: routine tool output
    """
    for rule in table.importance_rules:
        if rule.pattern.matches(line, expect):
            return rule.outcome
    return table.default_importance


def echo_important(
    lines: Iterable[str],
    table: BackendTable,
    expect: Optional[str],
    verbosity: int,
    echo: Callable[[str], None] = print,
) -> List[str]:
    """Echo the lines whose importance is below the verbosity threshold."""
    shown = []
    for line in lines:
        if importance(line, table, expect) < verbosity:
            echo(line)
            shown.append(line)
    return shown


def classify(
    name: str,
    table: BackendTable,
    lines: Sequence[str],
    status_lines: Optional[Sequence[str]] = None,
) -> Classification:
    """
    Classify one backend run.

    Args:
        name: Entry point name, for log messages
        table: The backend's pattern table
        lines: Output scanned for the expectation and statistics
        status_lines: Output scanned for the status (default: lines)
    """
    expect = scan_expectation(lines)

    status = scan_status(lines if status_lines is None else status_lines, table.status_rules, expect)
    if status is None:
        logger.info("Unable to determine status of %s", name)
        status = Status.UNKNOWN

    logger.info("Status: '%s' expected: '%s'", status, expect)

    stats = parse_statistics(lines, table.stats_pattern) if table.stats_pattern is not None else {}
    return Classification(status=status, expect=expect, stats=stats)
