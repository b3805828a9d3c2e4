"""Loguru logging configuration.

Writes colored, human-readable lines to stderr, with an optional rotating
log file when a ``log_dir`` is provided.
"""

import sys
from pathlib import Path

from loguru import logger

_LOG_FORMAT = "<dim>{time:YYYY-MM-DD HH:mm:ss}</dim> <level>{level:<8}</level> {message}"
_FILE_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} | {message}"

# Config-file level names mapped onto Loguru levels.
_LEVEL_ALIASES = {
    "warn": "WARNING",
    "off": None,
}


def resolve_level(log_level: str) -> str | None:
    """Map a configured level name to a Loguru level.

    Args:
        log_level: Level name, case-insensitive (``warn`` and ``off`` accepted).

    Returns:
        Upper-case Loguru level name, or None when logging is turned off.
    """
    name = log_level.strip().lower()
    if name in _LEVEL_ALIASES:
        return _LEVEL_ALIASES[name]
    return name.upper()


def setup_logging(log_level: str = "INFO", log_dir: str | None = None, *, colorize: bool = True) -> None:
    """Configure Loguru sinks.

    Args:
        log_level: Minimum log level to emit, or ``off`` to disable output.
        log_dir: Optional directory for log files.  When set, a rotating
            file sink is added (rotated every 24 hours, retained 7 days).
        colorize: Force ANSI colors on stderr even without a terminal,
            so container logs keep their colors.
    """
    level = resolve_level(log_level)
    logger.remove()
    if level is None:
        return

    logger.add(
        sys.stderr,
        level=level,
        format=_LOG_FORMAT,
        colorize=colorize,
    )

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path / "knot-downloader.log",
            level=level,
            format=_FILE_LOG_FORMAT,
            rotation="24h",
            retention="7 days",
        )
