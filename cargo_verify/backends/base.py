"""
Abstract verification backend interface.

A backend verifies one entry point of a bitcode file per call. Subclasses
provide the command line and the pattern table, and this class handles the
scratch directory, running the tool and classifying its output.
"""

import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional

from ..errors import VerifyError
from ..pipeline.entries import EntryPoint
from ..utils.config import Opt
from ..utils.logging import get_logger
from ..utils.process import CommandResult, is_tool_available, run_command
from ..verification.status import Status
from .classifier import BackendTable, Classification, classify, echo_important

LOG = get_logger("cargo_verify.backends.base")


class VerificationBackend(ABC):
    """
    Interface for bitcode verification backends.

    Implementations must define:
    - `name`, `executable` and `output_prefix`
    - `table`: the BackendTable used to classify output
    - `command()`: the tool's argv for one entry point
    """

    name: str = ""
    executable: str = ""
    output_prefix: str = ""
    table: BackendTable
    encoding: str = "utf-8"

    def __init__(self, opt: Opt, echo: Callable[[str], None] = print):
        self.opt = opt
        self.echo = echo

    def is_available(self) -> bool:
        """True when the backend's executable can be found."""
        return is_tool_available(self.executable)

    def output_dir(self, entry: EntryPoint) -> Path:
        """Per-entry scratch directory, so parallel runs never share one."""
        return self.opt.crate_path / f"{self.output_prefix}-{entry.name}"

    def prepare_output_dir(self, entry: EntryPoint) -> Path:
        """Remove any previous output directory for this entry."""
        outdir = self.output_dir(entry)
        try:
            shutil.rmtree(outdir)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise VerifyError(
                f"Directory or file '{outdir}' already exists, and can't be removed: {e}"
            ) from e

        if outdir.exists():
            raise VerifyError(f"Directory or file '{outdir}' already exists, and can't be removed")
        return outdir

    @abstractmethod
    def command(self, entry: EntryPoint, bcfile: Path, outdir: Path) -> List[str]:
        """Build the tool's command line."""
        ...

    def status_lines(self, result: CommandResult) -> List[str]:
        """Lines scanned for the status. Default: stderr."""
        return result.stderr.splitlines()

    def run(self, entry: EntryPoint, bcfile: Path, outdir: Path) -> Classification:
        """Run the tool once and classify its output."""
        argv = self.command(entry, bcfile, outdir)
        result = run_command(argv, tool=self.name, cwd=self.opt.crate_path, encoding=self.encoding)

        stderr = result.stderr.splitlines()
        classification = classify(entry.name, self.table, stderr, self.status_lines(result))

        for line in result.stdout.splitlines():
            LOG.info("STDOUT: %s", line)
        echo_important(stderr, self.table, classification.expect, self.opt.verbosity, self.echo)
        return classification

    def after_run(self, entry: EntryPoint, outdir: Path, classification: Classification) -> None:
        """Hook for statistics and replay. Default: nothing."""

    def verify(self, entry: EntryPoint, bcfile: Path) -> Status:
        """Verify one entry point."""
        outdir = self.prepare_output_dir(entry)

        LOG.info("     Running %s to verify %s", self.name, entry.name)
        LOG.info("      file: %s", bcfile)
        LOG.info("      entry: %s", entry.symbol)
        LOG.info("      results: %s", outdir)

        classification = self.run(entry, bcfile, outdir)
        self.after_run(entry, outdir, classification)
        return classification.status


def create_backend(opt: Opt, echo: Callable[[str], None] = print) -> Optional[VerificationBackend]:
    """
    Factory: create the bitcode backend selected by opt.

    Returns None for Proptest, which does not verify bitcode.
    """
    from .. import Backend

    if opt.backend is Backend.KLEE:
        from .klee import KleeBackend
        return KleeBackend(opt, echo=echo)

    if opt.backend is Backend.SEAHORN:
        from .seahorn import SeahornBackend
        return SeahornBackend(opt, echo=echo)

    return None
