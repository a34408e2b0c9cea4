from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, Dict, List

if TYPE_CHECKING:
    from .config import Config


logger = logging.getLogger("eventhub")

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
# Debug output carries the call site; it only goes to the file handler.
DEBUG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s %(funcName)s:%(lineno)d: %(message)s"

# python-telegram-bot polls through httpx, which logs every request at INFO.
DEFAULT_LOGGER_LEVELS: Dict[str, str] = {"httpx": "WARNING"}


def _file_handler(config: Config) -> RotatingFileHandler:
    log_dir = os.path.dirname(config.log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(
        config.log_file,
        maxBytes=config.log_max_bytes,
        backupCount=config.log_backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(DEBUG_FORMAT if config.debug else CONSOLE_FORMAT))
    return handler


def setup_logging(config: Config) -> logging.Logger:
    """Wire root handlers from ``config`` and apply per-logger levels.

    ``config.logger_levels`` (``LOG_LEVELS=eventhub.storage=DEBUG,httpx=ERROR``)
    overrides ``DEFAULT_LOGGER_LEVELS``; ``DEBUG=true`` drops the project
    loggers to DEBUG regardless of ``LOG_LEVEL``.
    """
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    handlers: List[logging.Handler] = [console]
    if config.log_file:
        handlers.append(_file_handler(config))

    logging.basicConfig(level=config.log_level, handlers=handlers, force=True)
    logging.captureWarnings(True)

    logger.setLevel(logging.DEBUG if config.debug else config.log_level)
    levels = {**DEFAULT_LOGGER_LEVELS, **config.logger_levels}
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)

    logger.debug("Logging configured (level=%s, file=%s, overrides=%s)", config.log_level, config.log_file, levels)
    return logger


__all__ = ["setup_logging", "logger"]
