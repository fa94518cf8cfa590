# treesync/logging_config.py
"""Console logging for treesync processes."""

import logging
import sys
from typing import Optional

from .config import Config

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s %(message)s"

_configured = False


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attaches one console handler to the ``treesync`` logger.

    :param level: Log level name; defaults to the ``log_level`` config key.
    :return: The package logger.
    """
    global _configured
    logger = logging.getLogger("treesync")
    level_name = (level or Config().get("log_level", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if not _configured:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
        _configured = True
    return logger
