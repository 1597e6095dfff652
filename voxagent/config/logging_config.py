"""
Logging setup for VoxAgent.

Every component logs through a child of the package logger
(``voxagent.conversation``, ``voxagent.agent``, ...), so ``configure_logging``
only has to attach handlers to ``voxagent`` itself. Records go to stdout and,
unless disabled, to a size-rotated file.

Environment:
    LOG_LEVEL          default level name (INFO)
    VOXAGENT_DEBUG     "true" forces DEBUG regardless of the requested level
    VOXAGENT_LOG_FILE  rotating log path (logs/voxagent.log); empty disables it
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from voxagent.config.constants import LOGGER_NAME

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_FILE = Path("logs") / "voxagent.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _resolve_level(level: Optional[str] = None) -> int:
    if os.getenv("VOXAGENT_DEBUG", "").lower() == "true":
        return logging.DEBUG
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    return getattr(logging, name, logging.INFO)


def _log_file_from_env() -> Optional[Path]:
    value = os.getenv("VOXAGENT_LOG_FILE")
    if value is None:
        return DEFAULT_LOG_FILE
    return Path(value) if value.strip() else None


def _build_handlers(log_file: Optional[Path], formatter: logging.Formatter) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
            )
        except OSError as e:
            sys.stderr.write(f"voxagent: file logging disabled ({e})\n")
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
    file_logging: bool = True,
) -> logging.Logger:
    """
    Attach console and file handlers to the ``voxagent`` logger.

    Calling it again replaces the previous handlers, so the CLI can reconfigure
    after settings are parsed.

    Args:
        level: Level name overriding LOG_LEVEL
        log_file: Rotating log path, defaults to VOXAGENT_LOG_FILE or
            ``logs/voxagent.log``
        file_logging: Set False to log to stdout only

    Returns:
        logging.Logger: The package logger
    """
    if not file_logging:
        log_file = None
    elif log_file is None:
        log_file = _log_file_from_env()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(_resolve_level(level))
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    for handler in _build_handlers(log_file, logging.Formatter(LOG_FORMAT)):
        logger.addHandler(handler)
    logger.propagate = False

    logger.debug("Logging configured (file: %s)", log_file or "disabled")
    return logger


def get_logger(component: str) -> logging.Logger:
    """Return the namespaced logger for a component, e.g. ``voxagent.conversation``."""
    return logging.getLogger(f"{LOGGER_NAME}.{component}")
