"""
Verification results, scheduling and counterexample replay.
"""

from .status import Status
from .scheduler import RunScheduler, RunSummary
from .replay import replay_command, replay_input

__all__ = [
    "Status",
    "RunScheduler",
    "RunSummary",
    "replay_command",
    "replay_input",
]
