"""
Cargo and rustup invocations.

Covers everything cargo-verify asks of the Rust toolchain: crate metadata,
the host triple, `cargo clean`, the verification build itself and the test
listing used to find test entry points.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .. import Backend
from ..errors import BuildError, ToolError
from ..utils.config import Opt
from ..utils.logging import get_logger
from ..utils.process import CommandResult, run_command, with_env_flag

logger = get_logger("cargo_verify.toolchain.cargo")

# Flags that make rustc produce a single linked bitcode file that symbolic
# tools can digest.
VERIFY_RUSTFLAGS = [
    "-Clto",  # Generate linked bitcode for entire crate
    "-Cembed-bitcode=yes",
    "--emit=llvm-bc",
    "--cfg=verify",  # Select verification versions of libraries
    "-Zpanic_abort_tests",  # Panic abort is simpler
    "-Cpanic=abort",
    "-Warithmetic-overflow",
    "-Coverflow-checks=yes",
    "-Cno-vectorize-loops",  # KLEE does not support vector intrinsics
    "-Cno-vectorize-slp",
    "-Ctarget-feature=-mmx,-sse,-sse2,-sse3,-ssse3,-sse4.1,-sse4.2,-3dnow,-3dnowa,-avx,-avx2",
    # use clang to link with LTO - to handle calls to C libraries
    "-Clinker-plugin-lto",
    "-Clinker=clang-10",
    "-Clink-arg=-fuse-ld=lld",
]

BUILD_ENV = {
    "CRATE_CC_NO_DEFAULTS": "true",
    "CFLAGS": "-flto=thin",
    "CC": "clang-10",
}

_TEST_LINE = re.compile(r"(\S+):\s+test\s*$")
_PACKAGE_CHARS = re.compile(r"[^a-zA-Z0-9_]")


@dataclass(frozen=True)
class CrateMetadata:
    """What cargo-verify needs from `cargo metadata`."""
    package: str
    target_directory: Path


def verify_rustflags(backend: Backend) -> str:
    """RUSTFLAGS for the verification build, after any user-set RUSTFLAGS."""
    flags = list(VERIFY_RUSTFLAGS)
    if backend is not Backend.SEAHORN:
        # Avoid generating SSE instructions
        flags.append("-Copt-level=1")
    return with_env_flag("RUSTFLAGS", " ".join(flags))


def cfg_verify_rustflags() -> str:
    """RUSTFLAGS for plain `cargo test`/`cargo run` of the verification build."""
    return with_env_flag("RUSTFLAGS", "--cfg=verify")


def features_args(features: Sequence[str]) -> List[str]:
    if not features:
        return []
    return ["--features", ",".join(features)]


def package_crate_name(name: str) -> str:
    """Turn a package name into the crate name used for its output files."""
    return _PACKAGE_CHARS.sub("_", name)


def read_metadata(crate_path: Path) -> CrateMetadata:
    """Find the root package name and the target directory of a crate."""
    manifest = crate_path / "Cargo.toml"
    result = run_command(
        ["cargo", "metadata", "--format-version", "1", "--no-deps",
         "--manifest-path", str(manifest)],
        tool="cargo",
        cwd=crate_path,
    )
    if not result.ok:
        result.log_output()
        raise ToolError(
            f"`cargo metadata` failed for {manifest}",
            tool="cargo", argv=result.argv, stdout=result.stdout,
            stderr=result.stderr, returncode=result.returncode,
        )

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise ToolError(f"Unable to parse `cargo metadata` output: {e}", tool="cargo",
                        argv=result.argv, stdout=result.stdout, stderr=result.stderr) from e

    package = _root_package(data.get("packages", []), manifest)
    if package is None:
        raise ToolError(f"No root package found in {manifest}", tool="cargo", argv=result.argv)

    return CrateMetadata(
        package=package_crate_name(package),
        target_directory=Path(data["target_directory"]),
    )


def _root_package(packages: list, manifest: Path) -> Optional[str]:
    wanted = manifest.resolve()
    for p in packages:
        if Path(p.get("manifest_path", "")).resolve() == wanted:
            return p["name"]
    if len(packages) == 1:
        return packages[0]["name"]
    return None


def get_default_host(crate_path: Path) -> str:
    """Return the host triple reported by `rustup show`."""
    result = run_command(["rustup", "show"], tool="rustup", cwd=crate_path)
    if not result.ok:
        result.log_output()
        raise ToolError(
            "`rustup show` terminated unsuccessfully",
            tool="rustup", argv=result.argv, stdout=result.stdout,
            stderr=result.stderr, returncode=result.returncode,
        )

    for line in result.stdout.splitlines():
        if line.startswith("Default host:"):
            return line[len("Default host:"):].strip()

    raise ToolError("Unable to determine default host", tool="rustup",
                    argv=result.argv, stdout=result.stdout, stderr=result.stderr)


def clean(crate_path: Path) -> None:
    """Run `cargo clean`. Failure is not an error."""
    try:
        result = run_command(["cargo", "clean"], tool="cargo", cwd=crate_path)
    except ToolError as e:
        logger.debug("cargo clean failed: %s", e)
        return
    if not result.ok:
        logger.debug("cargo clean exited with %d", result.returncode)


def build(opt: Opt, features: Sequence[str], target: str) -> CommandResult:
    """Compile the crate to bitcode with the verification flags."""
    rustflags = verify_rustflags(opt.backend)

    argv = ["cargo", "build", *features_args(features)]
    if opt.verifying_tests:
        argv.append("--tests")
    # Not needed to pick a target. An explicit target lets -Clto work for
    # crates whose dependencies use proc macros.
    argv.append(f"--target={target}")
    argv.extend(["-v"] * opt.verbosity)

    env = dict(BUILD_ENV)
    env["RUSTFLAGS"] = rustflags
    logger.info("RUSTFLAGS='%s'", rustflags)

    result = run_command(argv, tool="cargo", cwd=opt.crate_path, env=env)
    if not result.ok:
        result.log_output()
        raise BuildError(
            "FAILED: Couldn't compile",
            tool="cargo", argv=result.argv, stdout=result.stdout,
            stderr=result.stderr, returncode=result.returncode,
        )
    return result


def parse_test_list(output: str) -> List[str]:
    """Extract test names from `cargo test -- --list` output."""
    tests = []
    for line in output.splitlines():
        m = _TEST_LINE.search(line)
        if m:
            tests.append(m.group(1))
    return tests


def list_tests(crate_path: Path, features: Sequence[str]) -> List[str]:
    """Generate a list of tests in the crate."""
    argv = ["cargo", "test", *features_args(features), "--", "--list"]
    result = run_command(
        argv, tool="cargo", cwd=crate_path,
        env={"RUSTFLAGS": cfg_verify_rustflags()},
    )
    # The listing is still useful when some test binaries fail to build.
    if not result.ok:
        logger.warning("`cargo test -- --list` exited with %d", result.returncode)
        result.log_output()
    return parse_test_list(result.stdout)
