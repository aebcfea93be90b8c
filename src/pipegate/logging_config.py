"""Centralized logging configuration for pipegate."""

import json
import logging
import os
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, exception."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level_override: str | None = None, log_format: str | None = None) -> None:
    """Configure logging from arguments or environment variables.

    Environment variables:
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR. Defaults to WARNING, since
            the console already reports progress.
        LOG_FORMAT: "json" for JSON lines, anything else for text.
    """
    level_name = (level_override or os.getenv("LOG_LEVEL", "WARNING")).upper()
    level = getattr(logging, level_name, logging.WARNING)

    fmt = (log_format or os.getenv("LOG_FORMAT", "text")).lower()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )

    root_logger.addHandler(handler)
