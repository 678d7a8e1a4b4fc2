"""Structured logging for the notification service.

Every line on stdout is one JSON object. Phone numbers placed in the
``context`` under PHONE_KEYS are masked down to their last digits, so
sender logs can be correlated without storing full numbers.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

SERVICE_NAME = "notification-service"
LOGGER_PREFIX = "notification_service"
PHONE_KEYS = frozenset({"phone", "sender", "to"})
VISIBLE_DIGITS = 4
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def mask_phone(value: Any) -> Any:
    """'5492604123456' -> '*********3456'. Non-strings pass through."""
    if not isinstance(value, str) or len(value) <= VISIBLE_DIGITS:
        return value
    return "*" * (len(value) - VISIBLE_DIGITS) + value[-VISIBLE_DIGITS:]


def _scrub(context: dict) -> dict:
    return {key: mask_phone(value) if key in PHONE_KEYS else value for key, value in context.items()}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict) and context:
            entry["context"] = _scrub(context)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: Optional[str] = None) -> None:
    """Send every record to stdout as JSON; LOG_LEVEL applies when no level is given."""
    if level is None:
        from app.config import settings

        level = settings.log_level

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


class MessageLogger(logging.LoggerAdapter):
    """Logger for one inbound message: sender and message id ride on every record.

        log = MessageLogger(logger, "5492604123456", "wamid.X")
        log.info("Ticket saved", context={"ticket_id": 12})
    """

    def __init__(self, logger: logging.Logger, sender: str, message_id: Optional[str] = None):
        super().__init__(logger, {"sender": sender, "message_id": message_id})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra_context = kwargs.pop("context", None) or {}
        kwargs["extra"] = {"context": {**self.extra, **extra_context}}
        return msg, kwargs
