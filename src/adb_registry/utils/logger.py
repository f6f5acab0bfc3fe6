"""
Logging configuration for adb-registry

Provides centralized logging with file rotation and console output.
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Union


def resolve_level(level: Union[int, str]) -> int:
    """Turn 'DEBUG'/'info'/10 into a logging level number"""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def setup_logger(
    name: str = "adb_registry",
    log_dir: Union[Path, bool, None] = None,
    level: Union[int, str] = logging.INFO,
    console: bool = True,
    console_stream=None
) -> logging.Logger:
    """
    Set up the package logger with file and console handlers

    Calling it again for the same name returns the already configured logger.

    Args:
        name: Logger name
        log_dir: Directory for log files (default: ./logs). Pass False to disable the file.
        level: Logging level, number or name
        console: Enable console output
        console_stream: Stream for console output (default: stderr)

    Returns:
        Configured logger instance
    """
    level = resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    if console:
        console_handler = logging.StreamHandler(console_stream or sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        logger.addHandler(console_handler)

    if log_dir is not False:
        if log_dir is None:
            log_dir = Path.cwd() / "logs"
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_dir / f"{name}.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    return logger

