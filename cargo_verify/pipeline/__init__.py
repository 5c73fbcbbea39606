"""
Build pipeline and entry point resolution.
"""

from .build import (
    BuildPipeline,
    BuildStage,
    BitcodeArtifact,
    bitcode_candidates,
    native_objects,
    select_main_bitcode,
)
from .entries import EntryPoint, EntryResolver, filter_tests, mangle_functions
from .symbols import (
    NmSymbol,
    parse_nm_output,
    count_symbols,
    demangle_symbol,
    display_name,
    find_functions,
)

__all__ = [
    "BuildPipeline",
    "BuildStage",
    "BitcodeArtifact",
    "bitcode_candidates",
    "native_objects",
    "select_main_bitcode",
    "EntryPoint",
    "EntryResolver",
    "filter_tests",
    "mangle_functions",
    "NmSymbol",
    "parse_nm_output",
    "count_symbols",
    "demangle_symbol",
    "display_name",
    "find_functions",
]
