"""LLVM tool invocations: llvm-nm, llvm-link and rvt-patch-llvm."""

from pathlib import Path
from typing import Sequence

from ..errors import LinkError, PatchError, ToolError
from ..utils.logging import get_logger
from ..utils.process import run_command

logger = get_logger("cargo_verify.toolchain.llvm")


def read_symbol_table(bcfile: Path) -> str:
    """Return the raw `llvm-nm --defined-only` listing of a bitcode file."""
    result = run_command(["llvm-nm", "--defined-only", str(bcfile)], tool="llvm-nm")
    if not result.ok:
        result.log_output()
        raise ToolError(
            "FAILED: Couldn't run llvm-nm",
            tool="llvm-nm", argv=result.argv, stdout=result.stdout,
            stderr=result.stderr, returncode=result.returncode,
        )
    return result.stdout


def link(crate_path: Path, out_file: Path, in_files: Sequence[Path]) -> Path:
    """Link multiple bitcode/object files into one bitcode file."""
    argv = ["llvm-link", "-o", str(out_file), *(str(f) for f in in_files)]
    result = run_command(argv, tool="llvm-link", cwd=crate_path)
    if not result.ok:
        result.log_output()
        raise LinkError(
            "FAILED: Couldn't link",
            tool="llvm-link", argv=result.argv, stdout=result.stdout,
            stderr=result.stderr, returncode=result.returncode,
        )
    return out_file


def patch_llvm(options: Sequence[str], bcfile: Path, new_bcfile: Path) -> Path:
    """
    Patch a bitcode file to enable verification.

    The exact patching depends on the options. It includes arranging for
    initializers to run (so std::env::args() works) and redirecting panics
    to the backend's error-reporting intrinsics. The input file is left
    untouched.
    """
    if Path(new_bcfile) == Path(bcfile):
        raise PatchError(f"Refusing to patch {bcfile} in place", tool="rvt-patch-llvm")

    argv = ["rvt-patch-llvm", str(bcfile), "-o", str(new_bcfile), *options]
    result = run_command(argv, tool="rvt-patch-llvm")
    if not result.ok:
        result.log_output()
        raise PatchError(
            "FAILED: Couldn't run rvt-patch-llvm",
            tool="rvt-patch-llvm", argv=result.argv, stdout=result.stdout,
            stderr=result.stderr, returncode=result.returncode,
        )
    return new_bcfile
