"""
Structured Logging Configuration Module

Every command writes one log line carrying who did it, which branch it was
booked against and what record it touched. `JSONFormatter` renders those
attributes as a single JSON object per line.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional


# LogRecord attributes copied into the JSON line, in output order
CONTEXT_FIELDS = ("user_id", "branch_id", "action", "resource")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per log line; unset context fields are omitted"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": getattr(record, 'module', record.name),
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_entry[name] = value

        details = getattr(record, 'details', None)
        if details is not None:
            log_entry["extra"] = details

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "microfund",
                  log_format: str = "json", log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach a single handler to the microfund logger tree.

    Args:
        level: Level name such as INFO or DEBUG
        logger_name: Root of the tree to configure
        log_format: "json" for JSONFormatter, anything else for TEXT_FORMAT
        log_file: Append to this file instead of writing to stderr

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)

    # Calling twice replaces the handler
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if log_format == "json" else logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def get_logger(name: str = "microfund") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, branch_id: Optional[str] = None,
               action: Optional[str] = None, resource: Optional[str] = None,
               details: Optional[dict] = None) -> None:
    """
    Log a bookkeeping event with its actor, branch and record.

    `resource` is the id of the record created or changed; `details` holds
    amounts and types as a dict and ends up under "extra" in JSON output.
    Empty values are left off the record.
    """
    context = {
        'user_id': user_id,
        'branch_id': branch_id,
        'action': action,
        'resource': resource,
        'details': details,
    }
    extra = {key: value for key, value in context.items() if value}

    logger.log(getattr(logging, level.upper()), message, extra=extra)
