"""
Structured Logging Configuration Module

JSON log lines for teller operations. Each line names the acting user, the
action and the account resource it touched. Log lines are operational
telemetry only; the audit trail lives in BankHistory.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Record attributes set by log_action and emitted by JSONFormatter
STRUCTURED_FIELDS = ("user_id", "action", "resource", "extra")


class JSONFormatter(logging.Formatter):
    """One JSON object per record; structured fields appear only when set"""

    def format(self, record):
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "teller",
                  log_format: str = "json") -> logging.Logger:
    """
    Install a single stream handler on the application logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Application logger; component loggers sit below it
        log_format: "json" for structured output, "text" for plain lines

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if log_format == "json" else logging.Formatter(TEXT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


def get_logger(name: str = "teller") -> logging.Logger:
    """Get logger instance"""
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[Any] = None, action: Optional[str] = None,
               resource: Optional[str] = None,
               extra: Optional[Dict[str, Any]] = None) -> None:
    """
    Log message with the structured fields JSONFormatter understands.

    resource names the account touched, e.g. "account:42". Fields left as
    None are not attached to the record.
    """
    fields = dict(zip(STRUCTURED_FIELDS, (user_id, action, resource, extra or None)))
    logger.log(
        getattr(logging, level.upper()), message,
        extra={name: value for name, value in fields.items() if value is not None},
        stacklevel=2,
    )
