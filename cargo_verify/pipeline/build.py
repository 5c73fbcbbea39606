"""
Build pipeline: crate -> one linked (and possibly patched) bitcode file.

Stages:
1. Compile with the verification RUSTFLAGS
2. Select the single bitcode file that defines `main`
3. Link native objects produced by build scripts
4. Apply the backend's patch
5. Apply the initializer patch when the program takes arguments

Every stage after compilation writes a new file in the crate directory, so
earlier outputs stay on disk for diagnosis and later runs never mistake them
for compiler output.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional
import time

from .. import Backend
from ..errors import BuildError
from ..toolchain import cargo, llvm
from ..utils.config import Opt
from ..utils.logging import get_logger
from .symbols import MAIN_SYMBOLS, count_symbols, parse_nm_output

logger = get_logger("cargo_verify.pipeline.build")


class BuildStage(Enum):
    """Stages of the build pipeline."""
    COMPILE = "compile"
    SELECT = "select"
    LINK = "link"
    PATCH_BACKEND = "patch_backend"
    PATCH_INITIALIZERS = "patch_initializers"


@dataclass
class StageResult:
    """Output of one build stage."""
    stage: BuildStage
    output: Optional[Path]
    time_ms: float


@dataclass
class BitcodeArtifact:
    """
    Result of the build pipeline.

    `rust_file` is the bitcode rustc produced for the crate. Symbol lookups
    use it. `path` is the final file to hand to the backend.
    """
    rust_file: Path
    path: Path
    stages: List[StageResult] = field(default_factory=list)

    def history(self) -> List[Path]:
        return [s.output for s in self.stages if s.output is not None]


def bitcode_candidates(deps_dir: Path, package: str) -> List[Path]:
    """`{deps_dir}/{package}*.bc`"""
    if not deps_dir.is_dir():
        return []
    return sorted(
        p for p in deps_dir.iterdir()
        if p.name.startswith(package) and p.suffix == ".bc"
    )


def native_objects(build_dir: Path) -> List[Path]:
    """`{build_dir}/*/out/*.o`, the objects compiled by build scripts."""
    if not build_dir.is_dir():
        return []
    objects = []
    for d in sorted(build_dir.iterdir()):
        out = d / "out"
        if not out.is_dir():
            continue
        objects.extend(sorted(p for p in out.iterdir() if p.is_file() and p.suffix == ".o"))
    return objects


def has_main(bcfile: Path) -> bool:
    """True when the bitcode file defines a global `main` (or `_main`)."""
    logger.info("    Counting symbols %s in %s", list(MAIN_SYMBOLS), bcfile)
    count = count_symbols(parse_nm_output(llvm.read_symbol_table(bcfile)), MAIN_SYMBOLS)
    logger.info("    Found %d functions", count)
    return count > 0


def select_main_bitcode(candidates: List[Path], package: str, verifying_tests: bool) -> Path:
    """Pick the one candidate that defines `main`. Zero or several is an error."""
    bcs = [bc for bc in candidates if has_main(bc)]

    if len(bcs) == 1:
        return bcs[0]

    if not bcs:
        if verifying_tests:
            raise BuildError("FAILED: Use --tests with library crates")
        raise BuildError(f"FAILED: Test {package} compilation error")

    logger.info("    Ambiguous bitcode files %s", [str(b) for b in bcs])
    raise BuildError(
        f"FAILED: Test {package} compilation error: "
        f"ambiguous bitcode files {', '.join(str(b) for b in bcs)}"
    )


def patched_name(bcfile: Path, tag: str) -> Path:
    """`foo.bc` -> `foo.<tag>.bc`"""
    return bcfile.with_suffix(f".{tag}{bcfile.suffix}")


class BuildPipeline:
    """
    Produces the bitcode artifact for a crate.

    Usage::

        pipeline = BuildPipeline(opt, package, target_dir, target)
        artifact = pipeline.run()
    """

    def __init__(self, opt: Opt, package: str, target_dir: Path, target: str):
        self.opt = opt
        self.package = package
        self.target_dir = Path(target_dir)
        self.target = target
        self.features = opt.all_features()

    @property
    def profile_dir(self) -> Path:
        return self.target_dir / self.target / "debug"

    @property
    def output_dir(self) -> Path:
        """Where linked and patched files go. Never the deps directory."""
        return self.opt.crate_path.resolve()

    def _timed(self, stages: List[StageResult], stage: BuildStage, fn, *args) -> Path:
        t0 = time.time()
        output = fn(*args)
        stages.append(StageResult(stage, output, (time.time() - t0) * 1000.0))
        return output

    def compile(self) -> None:
        logger.info("  Compiling %s", self.package)
        cargo.build(self.opt, self.features, self.target)

    def select(self) -> Path:
        candidates = bitcode_candidates(self.profile_dir / "deps", self.package)
        return select_main_bitcode(candidates, self.package, self.opt.verifying_tests)

    def link(self, rust_file: Path, objects: List[Path]) -> Path:
        # Link the Rust bitcode against C/C++ code compiled by build scripts
        out = self.output_dir / "linked.bc"
        return llvm.link(self.opt.crate_path, out, [rust_file, *objects])

    def patch_backend(self, bcfile: Path) -> Path:
        logger.info("  Patching LLVM file for Seahorn")
        return llvm.patch_llvm(["--seahorn"], bcfile, self.output_dir / patched_name(bcfile, "patch").name)

    def patch_initializers(self, bcfile: Path) -> Path:
        logger.info("  Patching LLVM file for initializers")
        return llvm.patch_llvm(["--initializers"], bcfile, self.output_dir / patched_name(bcfile, "init").name)

    def run(self) -> BitcodeArtifact:
        stages: List[StageResult] = []

        t0 = time.time()
        self.compile()
        stages.append(StageResult(BuildStage.COMPILE, None, (time.time() - t0) * 1000.0))

        rust_file = self._timed(stages, BuildStage.SELECT, self.select)
        bcfile = rust_file

        objects = native_objects(self.profile_dir / "build")
        if objects:
            bcfile = self._timed(stages, BuildStage.LINK, self.link, rust_file, objects)

        if self.opt.backend is Backend.SEAHORN:
            bcfile = self._timed(stages, BuildStage.PATCH_BACKEND, self.patch_backend, bcfile)

        if self.opt.args:
            bcfile = self._timed(stages, BuildStage.PATCH_INITIALIZERS, self.patch_initializers, bcfile)

        return BitcodeArtifact(rust_file=rust_file, path=bcfile, stages=stages)
