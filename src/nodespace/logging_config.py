"""Logging configuration for nodespace."""

import sys
from pathlib import Path

from loguru import logger

_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} - {message}"


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> None:
    """Send loguru output to stderr, and to a rotating file when log_file is given.

    The MCP server speaks over stdout, so nothing here may write there.
    """
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(sys.stderr, level=level, format="{level.icon} {message}")
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level="DEBUG", format=_FILE_FORMAT, rotation="5 MB", retention=3)
