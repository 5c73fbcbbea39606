"""
End-to-end verification driver.

Ties the stages together:
1. Crate metadata (package name, target directory)
2. Build pipeline -> bitcode artifact
3. Entry resolution
4. Scheduled backend runs -> aggregate status

Proptest skips stages 2-4 and runs `cargo test` directly.
"""

from typing import Callable, Optional

from .backends import ProptestBackend, VerificationBackend, create_backend
from .errors import ConfigurationError
from .pipeline import BuildPipeline, EntryResolver
from .toolchain import cargo
from .utils.config import Opt
from .utils.logging import get_logger
from .verification import RunScheduler, RunSummary, Status

logger = get_logger("cargo_verify.driver")


class VerificationDriver:
    """
    Runs one cargo-verify invocation.

    Usage::

        driver = VerificationDriver(opt)
        status = driver.run()
    """

    def __init__(self, opt: Opt, echo: Callable[[str], None] = print):
        self.opt = opt.validate()
        self.echo = echo
        self.summary: Optional[RunSummary] = None

    def check_tools(self) -> None:
        """Fail early when the backend's executable is missing."""
        if not self.opt.backend.needs_bitcode:
            backend = ProptestBackend(self.opt)
        else:
            backend = create_backend(self.opt, echo=self.echo)
        if not backend.is_available():
            raise ConfigurationError(
                f"The {backend.name} backend needs `{backend.executable}`, which was not found"
            )

    def run(self) -> Status:
        opt = self.opt

        if opt.clean:
            cargo.clean(opt.crate_path)

        metadata = cargo.read_metadata(opt.crate_path)
        package = metadata.package
        logger.info("Checking %s", package)

        if not opt.backend.needs_bitcode:
            return ProptestBackend(opt).run()

        target = cargo.get_default_host(opt.crate_path)
        logger.info("target: %s", target)
        return self.verify(package, metadata.target_directory, target)

    def verify(self, package: str, target_dir, target: str) -> Status:
        # Compile and link using LTO to get the whole application in one
        # bitcode file
        artifact = BuildPipeline(self.opt, package, target_dir, target).run()
        entries = EntryResolver(self.opt, package).resolve(artifact.rust_file)

        backend: VerificationBackend = create_backend(self.opt, echo=self.echo)

        def verify_entry(entry):
            return backend.verify(entry, artifact.path)

        scheduler = RunScheduler(verify_entry, jobs=self.opt.jobs, echo=self.echo)
        self.summary = scheduler.run(entries)
        return self.summary.status


def run(opt: Opt, echo: Callable[[str], None] = print) -> Status:
    """Convenience wrapper: build a driver and run it."""
    return VerificationDriver(opt, echo=echo).run()
