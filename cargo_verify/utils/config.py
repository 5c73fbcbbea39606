"""
Configuration management for cargo-verify.

Options come from the command line, optionally seeded by a YAML file.
The resulting Opt is read-only for the rest of the run.
"""

import os
import yaml
from dataclasses import dataclass, field, replace
from typing import Dict, Any, Optional, List, Tuple
from pathlib import Path

from .. import Backend
from ..errors import ConfigurationError


def default_jobs() -> int:
    """Number of parallel verification jobs when none is given."""
    return os.cpu_count() or 1


@dataclass(frozen=True)
class Opt:
    """Options for one cargo-verify run."""

    # Filesystem path to local crate to verify
    crate_path: Path = Path(".")

    backend: Backend = Backend.KLEE

    # Extra verification flags, comma separated
    backend_flags: Optional[str] = None

    # Extra cargo features (on top of the backend's own)
    features: Tuple[str, ...] = ()

    # Run `cargo clean` first
    clean: bool = False

    # Verify all tests instead of 'main'
    tests: bool = False

    # Only verify tests containing one of these strings
    test: Tuple[str, ...] = ()

    jobs: int = field(default_factory=default_jobs)

    # 1: replay failing inputs, 2+: replay all inputs
    replay: int = 0

    verbosity: int = 0

    # Arguments to pass to program under test
    args: Tuple[str, ...] = ()

    @property
    def verifying_tests(self) -> bool:
        """True when tests rather than `main` are the entry points."""
        return self.tests or bool(self.test)

    @property
    def cargo_toml(self) -> Path:
        return self.crate_path / "Cargo.toml"

    def all_features(self) -> List[str]:
        """Backend features followed by user features, without duplicates."""
        features = list(self.backend.features)
        for f in self.features:
            if f not in features:
                features.append(f)
        return features

    def backend_flag_list(self) -> List[str]:
        """Split --backend-flags on commas."""
        if not self.backend_flags:
            return []
        return [f for f in self.backend_flags.split(",") if f]

    def validate(self) -> "Opt":
        """Reject option combinations the selected backend cannot handle."""
        if self.jobs < 1:
            raise ConfigurationError(f"--jobs must be at least 1, got {self.jobs}")

        if self.backend is Backend.PROPTEST:
            if self.replay > 0 and self.args:
                raise ConfigurationError(
                    "The Proptest backend does not support '--replay' and passing arguments together."
                )

        if self.backend is Backend.SEAHORN:
            if self.args:
                raise ConfigurationError("The Seahorn backend does not support passing arguments yet.")
            if self.replay != 0:
                raise ConfigurationError("The Seahorn backend does not support '--replay' yet.")

        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "crate_path": str(self.crate_path),
            "backend": self.backend.value,
            "backend_flags": self.backend_flags,
            "features": list(self.features),
            "clean": self.clean,
            "tests": self.tests,
            "test": list(self.test),
            "jobs": self.jobs,
            "replay": self.replay,
            "verbosity": self.verbosity,
            "args": list(self.args),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Opt":
        """Create options from dictionary. Unknown keys are ignored."""
        opt = cls()
        values: Dict[str, Any] = {}

        if "crate_path" in data:
            values["crate_path"] = Path(data["crate_path"])
        if "backend" in data:
            backend = data["backend"]
            values["backend"] = backend if isinstance(backend, Backend) else Backend.from_string(str(backend))
        if "backend_flags" in data:
            values["backend_flags"] = data["backend_flags"]
        if data.get("features") is not None:
            # `--features a,b` and `--features a --features b` are equivalent
            values["features"] = tuple(
                f for item in _as_tuple(data["features"]) for f in _as_tuple(item)
            )
        for key in ("test", "args"):
            if key in data and data[key] is not None:
                values[key] = _as_tuple(data[key]) if not isinstance(data[key], str) else (data[key],)
        for key in ("clean", "tests"):
            if key in data:
                values[key] = bool(data[key])
        for key in ("jobs", "replay", "verbosity"):
            if key in data and data[key] is not None:
                values[key] = int(data[key])

        return replace(opt, **values)


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(",") if v.strip())
    return tuple(str(v) for v in value)


def load_config(config_path: str) -> Dict[str, Any]:
    """Load option defaults from a YAML file."""
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, 'r') as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data

