"""Centralised Loguru configuration.

Sets up the logging sinks used by the command line runners:
  - **stderr** (terminal): compact timestamp format, coloured.
  - **File** (optional): DEBUG and above, full timestamps with source
    location, rotation with compression and 30-day retention.

Library modules only ever do ``from loguru import logger``; call
``setup_logger()`` once at application startup to choose the sinks.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger


def setup_logger(level: str = "INFO", log_dir: str | Path | None = None):
    """Configure and return the global Loguru logger.

    Args:
        level: Minimum level for the terminal sink
        log_dir: Directory for rotated log files (no file sink when None).
            Created automatically if it does not exist.

    Returns:
        The configured ``logger`` instance
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<level>{message}</level>"
        ),
        colorize=True,
    )

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path / "equilibria_{time:YYYY-MM-DD}.log",
            level="DEBUG",
            rotation="10 MB",
            retention="30 days",
            compression="zip",
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
                "{name}:{function}:{line} - {message}"
            ),
            encoding="utf-8",
        )

    return logger
