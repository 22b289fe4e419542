"""Logger configuration for StudyFlow."""
from __future__ import annotations
import os
import sys
from pathlib import Path

from loguru import logger


def setup_logger(
    level: str | None = None,
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Configure loguru with a console sink and an optional file sink.

    Args:
        level: Logging level. Defaults to STUDYFLOW_LOG_LEVEL, then INFO.
        log_file: Optional path to a log file. Defaults to STUDYFLOW_LOG_FILE.
        rotation: Log rotation size (e.g., "10 MB", "1 day")
        retention: Log retention period (e.g., "7 days", "1 month")
    """
    level = (level or os.environ.get("STUDYFLOW_LOG_LEVEL") or "INFO").upper()
    log_file = log_file or os.environ.get("STUDYFLOW_LOG_FILE")

    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level=level,
            rotation=rotation,
            retention=retention,
        )

    logger.debug(f"Logger initialized with level={level}")
