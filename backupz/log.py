"""Logging setup and structured records for failed commands."""
from __future__ import annotations

import logging
import shlex
import sys

from backupz.config import ConfigError
from backupz.executor import ExecutorError

LOG_FORMAT = "%(asctime)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def level_for(verbosity: int) -> int:
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def setup_logging(logfile: str, verbosity: int = 0, name: str = "backupz") -> logging.Logger:
    """
    Return a logger appending to logfile, echoing to stdout when verbose.

    Progress messages are INFO, so without -v only failures reach the file.
    """
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level_for(verbosity))
    logger.propagate = False

    try:
        file_handler = logging.FileHandler(logfile, mode="a")
    except OSError as e:
        raise ConfigError(f"Can't open log file: {logfile}: {e.strerror}") from e
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    if verbosity:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(console)

    return logger


def indent(text: str, prefix: str = "    ") -> list[str]:
    return [prefix + line for line in text.splitlines() if line.strip()]


def command_failure_lines(message: str, error: ExecutorError) -> list[str]:
    return [
        message,
        f"  Command: {shlex.join(error.cmd)}",
        f"  Exit code: {error.returncode}",
        "  STDOUT:",
        *indent(error.stdout),
        "  STDERR:",
        *indent(error.stderr),
    ]


def log_command_failure(logger: logging.Logger, message: str, error: ExecutorError) -> None:
    for line in command_failure_lines(message, error):
        logger.error(line)
