"""
Logging Setup.

Configures the loguru sinks for a CLI invocation: a stderr sink, plus a
rotating log file in the log directory when debug output is enabled.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)
LOG_FILE_NAME = "xray-bridge.log"


def init_logging(
    debug: bool = False,
    log_directory: Union[str, Path] = "logs",
) -> Optional[Path]:
    """
    Replace the default loguru sink.

    Args:
        debug: Log at DEBUG level and also write a log file.
        log_directory: Directory of the log file.

    Returns:
        Path of the log file if one was added.
    """
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if debug else "INFO", format=LOG_FORMAT)

    if not debug:
        return None

    log_file = Path(log_directory) / LOG_FILE_NAME
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(log_file, level="DEBUG", rotation="10 MB", retention=5, encoding="utf-8")
    logger.debug(f"Debug log file: {log_file.resolve()}")
    return log_file
