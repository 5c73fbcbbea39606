"""
Symbol tables and Rust name demangling.

rustc mangles names and appends a hash we cannot predict, so entry points
are found by demangling every defined function in the bitcode file and
comparing the readable names. Everything here works on the text printed by
`llvm-nm`, so it can be tested with synthetic tables.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from rust_demangler import demangle

from ..errors import ResolutionError
from ..utils.logging import get_logger

logger = get_logger("cargo_verify.pipeline.symbols")

MAIN_SYMBOLS = ("main", "_main")

# Trailing `::h0123456789abcdef` added by legacy mangling
_HASH_SUFFIX = re.compile(r"::h[0-9a-f]{16}$")


@dataclass(frozen=True)
class NmSymbol:
    """One line of `llvm-nm` output."""
    address: str
    kind: str
    name: str

    @property
    def is_text(self) -> bool:
        return self.kind.lower() == "t"


def parse_nm_output(output: str) -> List[NmSymbol]:
    """Parse `llvm-nm` lines of the form `<address> <kind> <name>`."""
    symbols = []
    for line in output.splitlines():
        fields = line.split(" ")
        if len(fields) == 3:
            symbols.append(NmSymbol(*fields))
    return symbols


def count_symbols(symbols: Iterable[NmSymbol], names: Sequence[str] = MAIN_SYMBOLS) -> int:
    """Count global text symbols (kind `T`) whose name is in names."""
    return sum(1 for s in symbols if s.kind == "T" and s.name in names)


def strip_platform_prefix(name: str) -> Optional[str]:
    """
    Return the mangled name without the extra underscore some platforms add.

    On macOS llvm-nm shows `__ZN...` for a symbol that is `_ZN...` elsewhere.
    Names that are not legacy Rust mangled names give None.
    """
    if name.startswith("__ZN"):
        return name[1:]
    if name.startswith("_ZN"):
        return name
    return None


def demangle_symbol(mangled: str) -> Optional[str]:
    """Demangle a Rust symbol and drop its hash suffix."""
    try:
        name = demangle(mangled)
    except Exception as e:
        logger.debug("Cannot demangle %s: %s", mangled, e)
        return None
    return _HASH_SUFFIX.sub("", name)


def display_name(mangled: str) -> Optional[str]:
    """Demangled name without its crate-root segment (`krate::a::b` -> `a::b`)."""
    name = demangle_symbol(mangled)
    if name is None:
        return None
    return "::".join(name.split("::")[1:])


def find_functions(symbols: Iterable[NmSymbol], names: Sequence[str]) -> List[Tuple[str, str]]:
    """
    Find functions by their demangled names.

    Returns (display name, mangled name) pairs in symbol table order.
    Raises ResolutionError when some names were not found. Only the number
    of missing names is reported.
    """
    wanted = set(names)
    found: List[Tuple[str, str]] = []

    for s in symbols:
        if not s.is_text:
            continue
        mangled = strip_platform_prefix(s.name)
        if mangled is None:
            continue
        dname = display_name(mangled)
        if dname is not None and dname in wanted:
            found.append((dname, mangled))

    logger.info("      Found %s", found)

    missing = len(wanted) - len({d for d, _ in found})
    if missing > 0:
        raise ResolutionError(f"Unable to find {missing} tests in bytecode file")

    return found
