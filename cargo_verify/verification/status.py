"""Verification outcome of one entry point."""

from enum import Enum


class Status(Enum):
    """Result of running one backend on one entry point."""
    UNKNOWN = "Unknown"
    VERIFIED = "Verified"
    ERROR = "Error"
    TIMEOUT = "Timeout"
    OVERFLOW = "Overflow"
    REACHABLE = "Reachable"

    @property
    def is_success(self) -> bool:
        """Verified is the only success."""
        return self is Status.VERIFIED

    def __str__(self) -> str:
        return self.value
