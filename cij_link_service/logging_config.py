"""
CIJ Link Service - Logging Configuration

Plain text logging for the console, or JSON lines for log aggregation.

Usage:
    from cij_link_service.logging_config import configure_logging

    configure_logging('DEBUG', 'json')
"""
import json
import logging
import sys
from datetime import datetime, timezone

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message",
}

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """
    Formats log records as one JSON object per line.

    Output format:
    {
        "timestamp": "2026-01-01T12:00:00.000000+00:00",
        "level": "INFO",
        "logger": "cij_link_service.link.supervisor",
        "thread": "cij-link-loop",
        "message": "Connected to printer 1 at 10.0.0.5:23",
        ...
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED:
                continue
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        return json.dumps(log_data)


def configure_logging(level: str = "INFO", fmt: str = "text") -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Level name (DEBUG, INFO, ...)
        fmt: 'text' or 'json'

    Returns:
        The package root logger
    """
    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger = logging.getLogger("cij_link_service")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False
    return logger
