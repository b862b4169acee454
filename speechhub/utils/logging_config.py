"""
Logging configuration for the SpeechHub API process.

Library code logs through ``speechhub.utils.logger.get_logger``; the API
entrypoint calls ``setup_logging`` once so uvicorn, httpx and the speechhub
loggers share one format and level.
"""
import logging
import logging.config
import sys
from typing import Dict, Any
from speechhub.config import get_settings
from speechhub.utils.logger import LOG_FORMAT, get_logger


def get_logging_config() -> Dict[str, Any]:
    """Get unified logging configuration."""
    settings = get_settings()
    log_level = settings.LOG_LEVEL
    
    log_format = LOG_FORMAT
    
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": log_format,
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "standard",
                "stream": sys.stdout
            }
        },
        "loggers": {
            "speechhub": {
                # module loggers from get_logger() carry their own handler
                "level": log_level,
                "handlers": [],
                "propagate": False
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False
            },
            "httpx": {
                # httpx logs full request URLs, which carry the Google API key
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            }
        },
        "root": {
            "level": log_level,
            "handlers": ["console"]
        }
    }


def setup_logging():
    """Setup unified logging configuration."""
    logging.config.dictConfig(get_logging_config())
    get_logger(__name__).info("Logging configuration initialized")
