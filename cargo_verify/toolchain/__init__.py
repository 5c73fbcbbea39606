"""
Wrappers around the Rust and LLVM command-line tools.
"""

from .cargo import (
    CrateMetadata,
    read_metadata,
    get_default_host,
    clean,
    build,
    list_tests,
    parse_test_list,
)
from .llvm import read_symbol_table, link, patch_llvm

__all__ = [
    "CrateMetadata",
    "read_metadata",
    "get_default_host",
    "clean",
    "build",
    "list_tests",
    "parse_test_list",
    "read_symbol_table",
    "link",
    "patch_llvm",
]
