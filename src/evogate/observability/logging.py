"""Structured JSON logging with correlation and tenant context."""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .context import get_client_id, get_correlation_id


def is_production() -> bool:
    """Stack traces are withheld from logs and error bodies in production."""
    return os.environ.get("APP_ENV", "development").lower() == "production"


class JsonFormatter(logging.Formatter):
    """JSON formatter that includes correlation ID and caller tenant."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_obj["correlationId"] = correlation_id

        client_id = get_client_id()
        if client_id:
            log_obj["clientId"] = client_id

        if record.exc_info:
            if is_production():
                exc = record.exc_info[1]
                log_obj["errorType"] = type(exc).__name__ if exc else None
            else:
                log_obj["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_obj.update(record.extra_fields)

        return json.dumps(log_obj, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger configured for JSON output on stdout."""
    logger = logging.getLogger(name)

    # Only configure if no handlers (avoid duplicate handlers)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
        logger.propagate = False

    return logger
