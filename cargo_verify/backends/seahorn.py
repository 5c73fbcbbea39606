"""
SeaHorn backend.

SeaHorn prints `sat` when it finds a counterexample and `unsat` when the
entry point is safe.
"""

from pathlib import Path
from typing import List

from ..pipeline.entries import EntryPoint
from ..utils.process import CommandResult
from ..verification.status import Status
from .base import VerificationBackend
from .classifier import EXPECTED_PANIC, BackendTable, Outcome, Pattern, Rule

# Extracted from `sea yama -y VCC/seahorn/sea_base.yaml`
SEA_FLAGS = [
    "-O3",
    "--inline",
    "--enable-loop-idiom",
    "--enable-indvar",
    "--no-lower-gv-init-struct",
    "--externalize-addr-taken-functions",
    "--no-kill-vaarg",
    "--with-arith-overflow=true",
    "--horn-unify-assumes=true",
    "--horn-gsa",
    "--no-fat-fns=bcmp,memcpy,assert_bytes_match,ensure_linked_list_is_allocated,sea_aws_linked_list_is_valid",
    "--dsa=sea-cs-t",
    "--devirt-functions=types",
    "--bmc=opsem",
    "--horn-vcgen-use-ite",
    "--horn-vcgen-only-dataflow=true",
    "--horn-bmc-coi=true",
    "--sea-opsem-allocator=static",
    "--horn-explicit-sp0=false",
    "--horn-bv2-lambdas",
    "--horn-bv2-simplify=true",
    "--horn-bv2-extra-widemem",
    "--horn-stats=true",
    "--keep-temps",
]

SEAHORN_TABLE = BackendTable(
    name="Seahorn",
    status_rules=[
        Rule(Pattern(prefix="VERIFIER_EXPECT:"), Outcome.SKIP),
        Rule(EXPECTED_PANIC, Status.VERIFIED),
        Rule(Pattern(exact="sat"), Status.ERROR),
        Rule(Pattern(exact="unsat"), Outcome.DONE),
    ],
    importance_rules=[
        Rule(Pattern(prefix="VERIFIER_EXPECT:"), 4),
        Rule(Pattern(exact="sat"), 1),
        Rule(Pattern(prefix="Warning: Externalizing function:"), 4),
        Rule(Pattern(prefix="Warning: not lowering an initializer for a global struct:"), 4),
        Rule(EXPECTED_PANIC, 5),
        Rule(Pattern(exact="unsat"), 5),
        # Uncategorized SeaHorn warnings
        Rule(Pattern(prefix="Warning:"), 0),
    ],
    default_importance=3,
)


class SeahornBackend(VerificationBackend):
    """Verification via SeaHorn bounded model checking."""

    name = "Seahorn"
    executable = "sea"
    output_prefix = "seaout"
    table = SEAHORN_TABLE

    def command(self, entry: EntryPoint, bcfile: Path, outdir: Path) -> List[str]:
        return [
            self.executable,
            "bpf",
            *SEA_FLAGS,
            f"--temp-dir={outdir}",
            f"--entry={entry.symbol}",
            *self.opt.backend_flag_list(),
            str(bcfile),
        ]

    def status_lines(self, result: CommandResult) -> List[str]:
        # The verdict is printed on stdout, panics on stderr
        return result.stderr.splitlines() + result.stdout.splitlines()
