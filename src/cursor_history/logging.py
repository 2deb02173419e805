"""Logging configuration for cursor-history.

Provides centralized logging setup with file output to ~/cursor-history/logs/.
"""

import logging
import sys
from pathlib import Path

# Default log directory
DEFAULT_LOG_DIR = Path.home() / "cursor-history" / "logs"


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int | str = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Configure logging for a cursor-history component.

    Handlers are attached to the package root logger ``cursor_history`` so
    that every module logger obtained through get_logger() inherits them.
    Log files are written to <log_dir>/<name>.log.

    Args:
        name: Component name (used for log filename)
        log_dir: Directory for log files (defaults to ~/cursor-history/logs/)
        level: Logging level, numeric or by name (defaults to INFO)
        console: Whether to also log to stderr (defaults to True)

    Returns:
        The configured component logger
    """
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger("cursor_history")
    root.setLevel(level)

    # Avoid adding duplicate handlers if already configured
    if root.handlers:
        return logging.getLogger(f"cursor_history.{name}")

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_file = log_dir / f"{name}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    return logging.getLogger(f"cursor_history.{name}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a cursor-history component.

    This function returns an existing logger or creates a basic one.
    For full configuration with file output, use setup_logging().

    Args:
        name: Logger name (will be prefixed with 'cursor_history.')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"cursor_history.{name}")
