"""
Entry point resolution.

Decides what to verify: either the crate's `main` or a filtered set of
tests, each paired with the symbol name the backend must be given.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from .. import Backend
from ..errors import ResolutionError
from ..toolchain import cargo, llvm
from ..utils.config import Opt
from ..utils.logging import get_logger
from .symbols import find_functions, parse_nm_output

logger = get_logger("cargo_verify.pipeline.entries")


@dataclass(frozen=True)
class EntryPoint:
    """A function to verify: its display name and its binary symbol."""
    name: str
    symbol: str

    def __str__(self) -> str:
        return self.name


def filter_tests(tests: Sequence[str], filters: Sequence[str]) -> List[str]:
    """Keep tests whose name contains any of the filters (all if no filters)."""
    if not filters:
        return list(tests)
    return [t for t in tests if any(f in t for f in filters)]


def mangle_functions(bcfile: Path, names: Sequence[str]) -> List[EntryPoint]:
    """Find the mangled names of functions defined in a bitcode file."""
    logger.info("    Looking up %s in %s", list(names), bcfile)
    symbols = parse_nm_output(llvm.read_symbol_table(bcfile))
    return [EntryPoint(d, m) for d, m in find_functions(symbols, names)]


class EntryResolver:
    """Produces the ordered list of entry points for one run."""

    def __init__(self, opt: Opt, package: str):
        self.opt = opt
        self.package = package

    def resolve(self, rust_file: Path) -> List[EntryPoint]:
        if self.opt.verifying_tests:
            entries = self.resolve_tests(rust_file)
        elif self.opt.backend is Backend.SEAHORN:
            entries = [self.resolve_mangled_main(rust_file)]
        else:
            entries = [EntryPoint("main", "main")]
        logger.info("  Mangled: %s", [(e.name, e.symbol) for e in entries])
        return entries

    def resolve_tests(self, rust_file: Path) -> List[EntryPoint]:
        logger.info("  Getting list of tests in %s", self.package)
        tests = cargo.list_tests(self.opt.crate_path, self.opt.all_features())
        tests = filter_tests(tests, self.opt.test)
        if not tests:
            raise ResolutionError("No tests found")

        logger.info("  Checking %s", tests)
        return mangle_functions(rust_file, tests)

    def resolve_mangled_main(self, rust_file: Path) -> EntryPoint:
        """SeaHorn needs the mangled name of the crate's `main`."""
        try:
            mains = mangle_functions(rust_file, [f"{self.package}::main"])
        except ResolutionError:
            raise ResolutionError("FAILED: can't find the 'main' function") from None
        if len(mains) > 1:
            raise ResolutionError("FAILED: found more than one 'main' function")
        return EntryPoint("main", mains[0].symbol)
