from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from sparkpath.utils.env_cfg import LogConfig, load_log_env

CONSOLE_FORMAT = (
    "{time:HH:mm:ss.SSS} | {level:<8} | sparkpath-gateway | {name}:{function} | {message}"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS ZZ} | {level:<8} | {process} | "
    "{name}:{function}:{line} | {message}"
)


def setup_logging(config: LogConfig | None = None, encoding: str = "utf-8") -> Path:
    """
    Route gateway logs to stderr and to a rotating, gzip-compressed file.

    Args:
        config (LogConfig | None, optional): Logging configuration. Loaded from
            ``LOG_PATH``, ``LOG_LEVEL``, ``LOG_ROTATION`` and ``LOG_RETENTION`` when omitted.
        encoding (str, optional): The log file encoding. Defaults to "utf-8".

    Returns:
        Path: The path to the log file.
    """
    config = config or load_log_env()
    config.path.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()

    logger.add(
        sink=sys.stderr,
        level=config.console_level,
        backtrace=False,
        diagnose=False,
        format=CONSOLE_FORMAT,
    )

    logger.add(
        sink=config.path,
        rotation=config.rotation,
        retention=config.retention,
        compression="gz",
        encoding=encoding,
        level="DEBUG",
        backtrace=True,
        diagnose=False,
        enqueue=True,
        format=FILE_FORMAT,
    )

    return config.path
