"""
Error types for cargo-verify.

Everything below VerifyError is fatal for the whole run except ReplayError,
which only ever reaches a warning.
"""

from typing import Optional, Sequence


class VerifyError(Exception):
    """Base class for cargo-verify errors."""


class ConfigurationError(VerifyError):
    """Invalid option combination or missing tool, detected before building."""


class ToolError(VerifyError):
    """An external tool failed. Carries its captured output for diagnosis."""

    def __init__(
        self,
        message: str,
        tool: str = "",
        argv: Sequence[str] = (),
        stdout: str = "",
        stderr: str = "",
        returncode: Optional[int] = None,
    ):
        super().__init__(message)
        self.tool = tool
        self.argv = list(argv)
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode

    def details(self) -> str:
        lines = [str(self)]
        if self.argv:
            lines.append("command: " + " ".join(self.argv))
        lines.extend("STDOUT: " + l for l in self.stdout.splitlines())
        lines.extend("STDERR: " + l for l in self.stderr.splitlines())
        return "\n".join(lines)


class BuildError(ToolError):
    """Compilation failed, or did not produce exactly one usable bitcode file."""


class LinkError(ToolError):
    """llvm-link could not combine the bitcode with native objects."""


class PatchError(ToolError):
    """rvt-patch-llvm could not rewrite the bitcode file."""


class ResolutionError(VerifyError):
    """Entry points or symbols are missing or ambiguous."""


class ReplayError(ToolError):
    """Replaying a counterexample failed."""
