"""
Replay of a concrete counterexample.

The program under test is rebuilt without the verification flags and run
with KTEST_FILE set, so the verification library reads its "symbolic"
values from the recorded test input.
"""

from pathlib import Path
from typing import Callable, List

from ..errors import ReplayError, ToolError
from ..toolchain.cargo import cfg_verify_rustflags, features_args
from ..utils.config import Opt
from ..utils.process import CommandResult, run_command


def replay_command(opt: Opt, name: str) -> List[str]:
    argv = ["cargo"]
    if opt.verifying_tests:
        argv.extend(["test", *features_args(opt.all_features()), name, "--", "--nocapture"])
    else:
        argv.extend(["run", *features_args(opt.all_features())])
        if opt.args:
            argv.extend(["--", *opt.args])
    return argv


def replay_input(
    opt: Opt,
    name: str,
    ktest: Path,
    echo: Callable[[str], None] = print,
) -> CommandResult:
    """
    Replay one KLEE test input and show the program's output.

    Raises:
        ReplayError: cargo could not be started or exited unsuccessfully
    """
    env = {
        "RUSTFLAGS": cfg_verify_rustflags(),
        "KTEST_FILE": str(ktest),
    }
    try:
        result = run_command(replay_command(opt, name), tool="Replay", cwd=opt.crate_path, env=env)
    except ToolError as e:
        raise ReplayError(f"Failed to replay {ktest}: {e}", tool="cargo", argv=e.argv) from e

    for line in result.stdout.splitlines():
        echo(line)
    for line in result.stderr.splitlines():
        echo(line)

    if not result.ok:
        raise ReplayError(
            f"Replay of {ktest} exited with {result.returncode}",
            tool="cargo", argv=result.argv, stdout=result.stdout,
            stderr=result.stderr, returncode=result.returncode,
        )
    return result
