"""
Structured logging configuration.

Production runs emit one JSON object per line so log shippers can index the
job and file context passed through ``extra``.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import os

from account_ingest.settings import settings


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRIBUTES = frozenset([
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName",
])

# Chatty third-party loggers held at WARNING
_QUIET_LOGGERS = ("sqlalchemy.engine", "boto3", "botocore", "uvicorn.access")


class CloudWatchJSONFormatter(logging.Formatter):
    """
    JSON formatter for log aggregation.
    Context fields such as job_id, upload_filename and file_index are lifted to the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string representation of the log record
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRIBUTES or key.startswith("_"):
                continue
            log_data[key] = value

        return json.dumps(log_data, default=str)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format.lower() == "json":
        return CloudWatchJSONFormatter()
    return logging.Formatter("%(asctime)s [%(threadName)s] %(levelname)s %(name)s: %(message)s")


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> logging.Logger:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Log level name, LOG_LEVEL when omitted
        log_format: "json" or "text", LOG_FORMAT when omitted

    Returns:
        The configured root logger
    """
    level_name = (level or os.getenv("LOG_LEVEL", settings.LOG_LEVEL)).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(_build_formatter(log_format or os.getenv("LOG_FORMAT", settings.LOG_FORMAT)))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
