"""
Logging setup using Loguru.

Every module logs through ``from loguru import logger``; this module only
decides where those records go.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"
CONSOLE_FORMAT = "{level}: {message}"


def setup_loguru(
    log_file: Path,
    level: str = "INFO",
    console_output: bool = False,
    rotation: str = "10 MB",
    retention: int = 5,
) -> None:
    """
    Configure loguru with a rotating file sink and an optional stderr sink.

    Args:
        log_file: Path to log file
        level: Minimum level (DEBUG, INFO, WARNING, ERROR)
        console_output: Also echo records to stderr
        rotation: Size at which the log file is rotated
        retention: Number of rotated files to keep
    """
    # Remove default handler
    logger.remove()

    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        rotation=rotation,
        retention=retention,
        level=level,
        format=LOG_FORMAT,
        enqueue=False,  # Synchronous writes (thread-safe but blocking)
    )

    if console_output:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    logger.info(f"Loguru initialized: {log_file} (level={level})")


def get_log_file_path(data_dir: Path, log_file: Optional[str] = None) -> Path:
    """Resolve the log file path, defaulting to <data_dir>/scheduled-music.log."""
    if log_file:
        return Path(log_file).expanduser()
    return data_dir / "scheduled-music.log"
