"""
cargo-verify: run verification backends over Rust crates.

Compiles a crate to a single LLVM bitcode file, works out which entry points
to check and runs a symbolic executor or model checker over each of them.

Backends:
    - klee: KLEE symbolic execution over the linked bitcode
    - seahorn: SeaHorn bounded model checking over the patched bitcode
    - proptest: plain `cargo test` of the crate's property tests
"""

__version__ = "0.1.0"
__author__ = "The Propverify authors"

from enum import Enum


class Backend(Enum):
    """Verification backends."""
    PROPTEST = "proptest"
    KLEE = "klee"
    SEAHORN = "seahorn"

    @classmethod
    def from_string(cls, backend: str) -> "Backend":
        """Parse backend from string."""
        backend_map = {b.value: b for b in cls}
        if backend.lower() not in backend_map:
            raise ValueError(f"Unknown backend: {backend}. Valid backends: {list(backend_map.keys())}")
        return backend_map[backend.lower()]

    @property
    def needs_bitcode(self) -> bool:
        """True for backends that consume the linked bitcode file."""
        return self is not Backend.PROPTEST

    @property
    def features(self) -> list:
        """Cargo features that select the backend's verification library."""
        if self is Backend.KLEE:
            return ["verifier-klee"]
        return ["verifier-seahorn"]
