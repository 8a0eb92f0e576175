"""Centralized logging configuration."""
from __future__ import annotations

import logging
from logging.config import dictConfig

from cadence.core.context import get_request_id

# Chatty third-party loggers, capped unless the app runs at DEBUG.
QUIET_LOGGERS = ("apscheduler", "sqlalchemy.engine", "httpx")


class RequestIdFilter(logging.Filter):
    """Add request_id attribute to log records (HTTP request or scheduler run)."""

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - minimal logic
        record.request_id = get_request_id() or "-"
        return True


def configure_logging(*, log_level: str = "INFO") -> None:
    """Configure application and worker logging once per process."""
    if getattr(configure_logging, "_configured", False):
        return

    level = log_level.upper()
    third_party_level = "DEBUG" if level == "DEBUG" else "WARNING"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(request_id)s | %(message)s",
                }
            },
            "filters": {
                "request_id": {
                    "()": "cadence.core.logging.RequestIdFilter",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": level,
                    "filters": ["request_id"],
                }
            },
            "loggers": {name: {"level": third_party_level} for name in QUIET_LOGGERS},
            "root": {
                "handlers": ["console"],
                "level": level,
            },
        }
    )

    logging.getLogger(__name__).debug("Logging configured at %s", level)
    setattr(configure_logging, "_configured", True)
