"""
OnuStatusMap - Logging Configuration

Console plus rotating file logging for the whole application. Quota
exhaustion warnings from the call gate are also written to their own file,
so the hourly SmartOLT budget can be audited without reading the full log.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional, Union


CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Logger whose WARNING records are the [RATE LIMIT] quota events
QUOTA_LOGGER = "onu_map.api.rate_limiter"

APP_MODULES = (
    "onu_map.api",
    "onu_map.cache",
    "onu_map.services",
    "onu_map.dashboard",
    "onu_map.utils"
)

# Third-party libraries - reduce noise
NOISY_LIBRARIES = (
    "aiohttp",
    "urllib3",
    "werkzeug",
    "redis"
)


def resolve_log_level(value: Union[int, str, None], default: int = logging.INFO) -> int:
    """
    Turn a level name ("debug", "WARNING") or number into a logging level.

    Unknown names fall back to the default.
    """
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).strip().upper())
    return level if isinstance(level, int) else default


def _rotating_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    level: Optional[int] = None,
    log_file: str = "onu_map.log",
    log_dir: Path = Path("data/logs")
) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Console level; defaults to the LOG_LEVEL environment variable or INFO
        log_file: Main log file name
        log_dir: Directory for log files

    Returns:
        Root logger instance
    """
    if level is None:
        level = resolve_log_level(os.getenv("LOG_LEVEL"))

    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    # Always capture debug to file
    root_logger.addHandler(_rotating_handler(log_dir / log_file, logging.DEBUG))

    quota_logger = logging.getLogger(QUOTA_LOGGER)
    for handler in list(quota_logger.handlers):
        quota_logger.removeHandler(handler)
    quota_logger.addHandler(_rotating_handler(log_dir / "quota_events.log", logging.WARNING))

    configure_module_loggers(level)

    return root_logger


def configure_module_loggers(default_level: int = logging.INFO) -> None:
    """
    Configure logging levels for application modules and noisy libraries.

    Args:
        default_level: Default logging level for application modules
    """
    for module in APP_MODULES:
        logging.getLogger(module).setLevel(default_level)

    for lib in NOISY_LIBRARIES:
        logging.getLogger(lib).setLevel(logging.WARNING)
