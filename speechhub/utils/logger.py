"""
Centralized logging utility for consistent logging across SpeechHub.

Every module gets its logger through ``get_logger(__name__)``. API keys and
subscription keys must never appear in log messages.
"""

import logging
import sys
import os
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a logger writing to stdout.

    Args:
        name: Logger name, normally the module's ``__name__``
        level: Level name overriding the LOG_LEVEL environment variable
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

        log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
        logger.setLevel(getattr(logging, log_level, logging.INFO))

    return logger
