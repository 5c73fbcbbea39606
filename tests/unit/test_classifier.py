"""
Unit tests for backend output classification.

Covers the expectation marker, the KLEE and SeaHorn status tables,
statistics parsing and importance ranking.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from cargo_verify.backends.classifier import (
    classify,
    echo_important,
    importance,
    is_expected_panic,
    parse_expectation,
    parse_statistics,
    scan_expectation,
)
from cargo_verify.backends.klee import KLEE_TABLE
from cargo_verify.backends.seahorn import SEAHORN_TABLE
from cargo_verify.verification.status import Status


class TestExpectation:
    """Tests for the VERIFIER_EXPECT marker."""

    def test_bare_should_panic(self):
        assert parse_expectation("VERIFIER_EXPECT: should_panic") == ""

    def test_expected_substring(self):
        line = 'VERIFIER_EXPECT: should_panic(expected = "index out of bounds")'
        assert parse_expectation(line) == "index out of bounds"

    def test_other_lines(self):
        assert parse_expectation("KLEE: done: total instructions = 10") is None
        assert parse_expectation("VERIFIER_EXPECT: something else") is None

    def test_last_marker_wins(self):
        lines = [
            'VERIFIER_EXPECT: should_panic(expected = "first")',
            "unrelated",
            'VERIFIER_EXPECT: should_panic(expected = "second")',
        ]
        assert scan_expectation(lines) == "second"

    def test_no_marker(self):
        assert scan_expectation(["a", "b"]) is None

    def test_expected_panic_requires_expectation(self):
        line = "thread 'main' panicked at 'boom', src/main.rs:3:5"
        assert is_expected_panic(line, None) is False
        assert is_expected_panic(line, "") is True
        assert is_expected_panic(line, "boom") is True
        assert is_expected_panic(line, "bang") is False

    def test_expected_panic_needs_panic_marker(self):
        assert is_expected_panic("boom", "boom") is False


class TestKleeStatus:
    """Tests for classifying KLEE output."""

    def test_done_without_expectation_is_verified(self):
        lines = [
            "KLEE: output directory is \"kleeout-main\"",
            "KLEE: done: total instructions = 1234",
            "KLEE: done: completed paths = 3",
        ]
        result = classify("main", KLEE_TABLE, lines)

        assert result.status == Status.VERIFIED
        assert result.expect is None

    def test_done_with_expectation_is_error(self):
        """The expected panic never happened."""
        lines = [
            "VERIFIER_EXPECT: should_panic",
            "KLEE: done: completed paths = 1",
        ]
        result = classify("t1", KLEE_TABLE, lines)

        assert result.status == Status.ERROR

    def test_generic_should_panic_is_verified(self):
        """A panic line that also says "assertion failed" is still expected."""
        lines = [
            "VERIFIER_EXPECT: should_panic",
            "thread 'main' panicked at 'assertion failed: x < 10', src/lib.rs:9:5",
            "KLEE: ERROR: src/lib.rs:9: abort failure",
        ]
        result = classify("t2", KLEE_TABLE, lines)

        assert result.status == Status.VERIFIED

    def test_expected_substring_mismatch_is_error(self):
        lines = [
            'VERIFIER_EXPECT: should_panic(expected = "overflowed")',
            "thread 'main' panicked at 'assertion failed: x < 10', src/lib.rs:9:5",
        ]
        result = classify("t3", KLEE_TABLE, lines)

        assert result.expect == "overflowed"
        assert result.status == Status.ERROR

    def test_expected_substring_match_is_verified(self):
        lines = [
            'VERIFIER_EXPECT: should_panic(expected = "overflowed")',
            "thread 'main' panicked at 'buffer overflowed', src/lib.rs:9:5",
        ]
        assert classify("t4", KLEE_TABLE, lines).status == Status.VERIFIED

    @pytest.mark.parametrize("line,status", [
        ("KLEE: HaltTimer invoked", Status.TIMEOUT),
        ("KLEE: halting execution, dumping remaining states", Status.TIMEOUT),
        ("KLEE: ERROR: Could not link KLEE files", Status.UNKNOWN),
        ("KLEE: ERROR: Unable to load symbol(foo) while initializing globals", Status.UNKNOWN),
        ("KLEE: ERROR: src/main.rs:4: reached \"unreachable\" instruction", Status.REACHABLE),
        ("KLEE: ERROR: src/main.rs:4: overflow on addition", Status.OVERFLOW),
        ("KLEE: ERROR: src/main.rs:4: abort failure", Status.ERROR),
        ("thread 'main' panicked at 'attempt to add with overflow'", Status.OVERFLOW),
        ("note: run with `RUST_BACKTRACE=1` environment variable", Status.ERROR),
        ("verification failed", Status.ERROR),
    ])
    def test_status_table(self, line, status):
        assert classify("main", KLEE_TABLE, [line]).status == status

    def test_first_deciding_line_wins(self):
        lines = [
            "KLEE: ERROR: src/main.rs:4: overflow on addition",
            "KLEE: done: completed paths = 2",
        ]
        assert classify("main", KLEE_TABLE, lines).status == Status.OVERFLOW

    def test_marker_line_never_decides(self):
        """The marker mentions should_panic, which must not look like an error."""
        lines = ['VERIFIER_EXPECT: should_panic(expected = "assertion failed")']
        result = classify("t5", KLEE_TABLE, lines)

        assert result.status == Status.UNKNOWN

    def test_no_deciding_line_is_unknown(self):
        assert classify("main", KLEE_TABLE, ["hello", "world"]).status == Status.UNKNOWN


class TestStatistics:
    """Tests for `done:` statistics."""

    def test_parse_counts(self):
        lines = [
            "KLEE: done: total instructions = 1234",
            "KLEE: done: completed paths = 42",
            "KLEE: done: generated tests = 2",
        ]
        stats = parse_statistics(lines, KLEE_TABLE.stats_pattern)

        assert stats == {
            "total instructions": 1234,
            "completed paths": 42,
            "generated tests": 2,
        }

    def test_malformed_count_dropped(self):
        lines = [
            "KLEE: done: completed paths = many",
            "KLEE: done: generated tests = 3",
        ]
        stats = parse_statistics(lines, KLEE_TABLE.stats_pattern)

        assert stats == {"generated tests": 3}

    def test_default_pattern(self):
        assert parse_statistics(["done: completed paths = 42"]) == {"completed paths": 42}

    def test_classify_collects_stats(self):
        result = classify("main", KLEE_TABLE, ["KLEE: done: completed paths = 7"])
        assert result.stats == {"completed paths": 7}

    def test_seahorn_has_no_stats(self):
        assert classify("main", SEAHORN_TABLE, ["done: completed paths = 7"]).stats == {}


class TestSeahornStatus:
    """Tests for classifying SeaHorn output."""

    def test_sat_is_error(self):
        assert classify("main", SEAHORN_TABLE, [], ["sat"]).status == Status.ERROR

    def test_unsat_is_verified(self):
        assert classify("main", SEAHORN_TABLE, [], ["unsat"]).status == Status.VERIFIED

    def test_unsat_with_expectation_is_error(self):
        stderr = ["VERIFIER_EXPECT: should_panic"]
        result = classify("t", SEAHORN_TABLE, stderr, stderr + ["unsat"])

        assert result.status == Status.ERROR

    def test_expected_panic_is_verified(self):
        stderr = [
            "VERIFIER_EXPECT: should_panic",
            "thread 'main' panicked at 'boom'",
        ]
        result = classify("t", SEAHORN_TABLE, stderr, stderr + ["sat"])

        assert result.status == Status.VERIFIED

    def test_expected_substring_mismatch_is_error(self):
        stderr = [
            'VERIFIER_EXPECT: should_panic(expected = "divide by zero")',
            "thread 'main' panicked at 'index out of bounds'",
        ]
        result = classify("t", SEAHORN_TABLE, stderr, stderr + ["sat"])

        assert result.status == Status.ERROR

    def test_only_exact_lines_decide(self):
        assert classify("main", SEAHORN_TABLE, [], ["unsat core", "satisfied"]).status == Status.UNKNOWN


class TestImportance:
    """Tests for importance ranking and echoing."""

    def test_klee_ranks(self):
        assert importance("KLEE: ERROR: Could not link", KLEE_TABLE, None) == -1
        assert importance("KLEE: something new", KLEE_TABLE, None) == 0
        assert importance("assertion failed: x", KLEE_TABLE, None) == 1
        assert importance("KLEE: ERROR: abort failure", KLEE_TABLE, None) == 2
        assert importance("hello from the program", KLEE_TABLE, None) == 3
        assert importance("KLEE: WARNING: undefined reference", KLEE_TABLE, None) == 4
        assert importance("KLEE: done: completed paths = 1", KLEE_TABLE, None) == 5

    def test_expected_panic_is_routine(self):
        line = "thread 'main' panicked at 'assertion failed: x'"
        assert importance(line, KLEE_TABLE, None) == 1
        assert importance(line, KLEE_TABLE, "") == 5

    def test_seahorn_ranks(self):
        assert importance("sat", SEAHORN_TABLE, None) == 1
        assert importance("unsat", SEAHORN_TABLE, None) == 5
        assert importance("Warning: Externalizing function: f", SEAHORN_TABLE, None) == 4
        assert importance("Warning: odd", SEAHORN_TABLE, None) == 0

    def test_echo_below_verbosity(self):
        lines = [
            "KLEE: ERROR: Could not link",
            "KLEE: something new",
            "hello from the program",
            "KLEE: done: completed paths = 1",
        ]
        echoed = []

        shown = echo_important(lines, KLEE_TABLE, None, 0, echoed.append)
        assert shown == ["KLEE: ERROR: Could not link"]
        assert echoed == shown

        shown = echo_important(lines, KLEE_TABLE, None, 4, lambda line: None)
        assert shown == lines[:3]
