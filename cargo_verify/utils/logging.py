"""
Logging utilities for cargo-verify.

All diagnostics go to stderr so that the `test ... ok` lines and the final
VERIFICATION_RESULT line on stdout stay machine-readable.
"""

import logging
import sys
from typing import Dict, Iterable, Optional, Sequence


# Global logger instances
_loggers: Dict[str, logging.Logger] = {}

# `-v` count -> logging level
_VERBOSITY_LEVELS = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
}


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for better readability."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def verbosity_to_level(verbosity: int) -> int:
    """Map the number of `-v` flags to a logging level."""
    if verbosity < 0:
        return logging.CRITICAL
    return _VERBOSITY_LEVELS.get(verbosity, logging.DEBUG)


def setup_logger(
    name: str = "cargo_verify",
    verbosity: int = 0,
    colored: Optional[bool] = None,
) -> logging.Logger:
    """
    Set up and configure the package logger.

    Args:
        name: Logger name
        verbosity: Number of `-v` flags given on the command line
        colored: Force colors on/off (default: only when stderr is a tty)

    Returns:
        Configured logger instance
    """
    level = verbosity_to_level(verbosity)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers = []
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    if colored is None:
        colored = sys.stderr.isatty()
    fmt = '%(levelname)s %(message)s'
    if colored:
        console_handler.setFormatter(ColoredFormatter(fmt))
    else:
        console_handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(console_handler)

    _loggers[name] = logger
    return logger


def get_logger(name: str = "cargo_verify") -> logging.Logger:
    """
    Get a logger below the package logger.

    Child loggers are not configured here; they inherit the handlers set up
    by `setup_logger` on the package logger.
    """
    if name in _loggers:
        return _loggers[name]
    logger = logging.getLogger(name)
    _loggers[name] = logger
    return logger


def info_cmd(logger: logging.Logger, tool: str, argv: Sequence[str], cwd: Optional[str] = None) -> None:
    """Log the command line used to run an external tool."""
    logger.info(
        "Running %s on '%s' with command `%s`",
        tool, cwd or ".", " ".join(str(a) for a in argv),
    )


def info_lines(logger: logging.Logger, prefix: str, lines: Iterable[str]) -> None:
    """Log every line of captured tool output with a prefix."""
    for line in lines:
        logger.info("%s%s", prefix, line)
