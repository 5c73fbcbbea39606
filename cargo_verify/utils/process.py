"""Run external tools as blocking subprocesses and capture their output."""

import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from ..errors import ToolError
from .logging import get_logger, info_cmd, info_lines

logger = get_logger("cargo_verify.process")

PathLike = Union[str, Path]


@dataclass(frozen=True)
class CommandResult:
    argv: List[str]
    stdout: str
    stderr: str
    returncode: int
    time_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def log_output(self) -> None:
        """Log captured output, stdout first."""
        info_lines(logger, "STDOUT: ", self.stdout.splitlines())
        info_lines(logger, "STDERR: ", self.stderr.splitlines())


def is_tool_available(exe: str) -> bool:
    """Return True if the executable appears runnable on this system."""
    # Explicit path
    if os.path.sep in exe or (os.path.altsep and os.path.altsep in exe):
        return os.path.exists(exe) and os.access(exe, os.X_OK)

    return shutil.which(exe) is not None


def with_env_flag(name: str, extra: str) -> str:
    """Append flags to an environment variable's current value."""
    current = os.environ.get(name)
    if current:
        return f"{current} {extra}"
    return extra


def run_command(
    argv: Sequence[PathLike],
    *,
    tool: str,
    cwd: Optional[PathLike] = None,
    env: Optional[Dict[str, str]] = None,
    encoding: str = "utf-8",
) -> CommandResult:
    """
    Run a command to completion and capture stdout/stderr.

    Args:
        argv: Program and arguments
        tool: Name used in log messages and errors
        cwd: Working directory
        env: Variables added to (not replacing) the current environment
        encoding: How to decode output. KLEE output is read as latin-1
            because it may contain arbitrary bytes.

    Raises:
        ToolError: The program could not be started at all
    """
    args = [str(a) for a in argv]
    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update(env)

    info_cmd(logger, tool, args, str(cwd) if cwd is not None else None)

    t0 = time.time()
    try:
        p = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=str(cwd) if cwd is not None else None,
            env=full_env,
        )
    except OSError as e:
        raise ToolError(f"Failed to execute `{args[0]}`: {e}", tool=tool, argv=args) from e
    dt_ms = (time.time() - t0) * 1000.0

    errors = "strict" if encoding == "latin-1" else "replace"
    return CommandResult(
        argv=args,
        stdout=p.stdout.decode(encoding, errors=errors),
        stderr=p.stderr.decode(encoding, errors=errors),
        returncode=p.returncode,
        time_ms=dt_ms,
    )
