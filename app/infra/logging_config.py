"""Logging setup shared by the API process and Celery workers."""

from __future__ import annotations

import logging
import logging.config
from typing import Optional

from app.config import get_settings

ROOT_LOGGER_NAME = "parley"

_configured = False


class LoggingConfig:
    """
    Configure stdlib logging once per process.

    The level comes from LOG_LEVEL unless passed explicitly. Calling it again
    only adjusts the level.
    """

    FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

    def __init__(self, level: Optional[str] = None) -> None:
        global _configured
        resolved = (level or get_settings().log_level or "INFO").upper()
        if _configured:
            logging.getLogger(ROOT_LOGGER_NAME).setLevel(resolved)
            return
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {"default": {"format": self.FORMAT}},
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "formatter": "default",
                        "stream": "ext://sys.stdout",
                    }
                },
                "loggers": {
                    ROOT_LOGGER_NAME: {
                        "handlers": ["console"],
                        "level": resolved,
                        "propagate": True,
                    },
                    "app": {
                        "handlers": ["console"],
                        "level": resolved,
                        "propagate": True,
                    },
                },
            }
        )
        logging.captureWarnings(True)
        _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger under the service namespace."""
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
