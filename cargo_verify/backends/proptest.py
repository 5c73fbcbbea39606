"""
Proptest backend.

Runs the crate's property tests with `cargo test`. No bitcode is built and
there is one status for the whole run.
"""

from ..toolchain.cargo import features_args
from ..utils.config import Opt
from ..utils.logging import get_logger
from ..utils.process import is_tool_available, run_command
from ..verification.status import Status

logger = get_logger("cargo_verify.backends.proptest")


class ProptestBackend:
    """Invoke proptest to compile and fuzz proptest targets."""

    name = "Proptest"
    executable = "cargo"

    def __init__(self, opt: Opt):
        self.opt = opt

    def is_available(self) -> bool:
        return is_tool_available(self.executable)

    def command(self) -> list:
        opt = self.opt
        argv = ["cargo", "test", "--manifest-path", str(opt.cargo_toml)]
        argv.extend(["-v"] * opt.verbosity)
        argv.extend(features_args(opt.all_features()))

        if opt.tests:
            argv.append("--tests")

        for t in opt.test:
            argv.extend(["--test", t])

        if opt.replay > 0:
            argv.extend(["--", "--nocapture"])
        elif opt.args:
            argv.extend(["--", *opt.args])
        return argv

    def run(self) -> Status:
        logger.info("  Invoking cargo run with proptest backend")
        result = run_command(self.command(), tool=self.name, cwd=self.opt.crate_path)

        if result.ok:
            return Status.VERIFIED

        result.log_output()
        for line in result.stderr.splitlines():
            if "with overflow" in line:
                return Status.OVERFLOW
        return Status.ERROR
