"""Utility modules for cargo-verify."""

from .config import Opt, load_config, default_jobs
from .logging import setup_logger, get_logger
from .process import CommandResult, run_command, is_tool_available

__all__ = [
    "Opt",
    "load_config",
    "default_jobs",
    "setup_logger",
    "get_logger",
    "CommandResult",
    "run_command",
    "is_tool_available",
]
