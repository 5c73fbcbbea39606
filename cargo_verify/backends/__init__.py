"""
Verification backends and the shared output classifier.
"""

from .base import VerificationBackend, create_backend
from .classifier import (
    BackendTable,
    Classification,
    Outcome,
    Pattern,
    Rule,
    classify,
    importance,
    is_expected_panic,
    parse_expectation,
    parse_statistics,
    scan_expectation,
    scan_status,
)
from .klee import KleeBackend, KLEE_TABLE
from .seahorn import SeahornBackend, SEAHORN_TABLE
from .proptest import ProptestBackend

__all__ = [
    "VerificationBackend",
    "create_backend",
    "BackendTable",
    "Classification",
    "Outcome",
    "Pattern",
    "Rule",
    "classify",
    "importance",
    "is_expected_panic",
    "parse_expectation",
    "parse_statistics",
    "scan_expectation",
    "scan_status",
    "KleeBackend",
    "KLEE_TABLE",
    "SeahornBackend",
    "SEAHORN_TABLE",
    "ProptestBackend",
]
