"""
Structured JSON logging for GrantPilot.

Engine modules log through ``logging.getLogger(__name__)``; this module
installs the JSON formatter on the ``grantpilot`` logger hierarchy.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

LOGGER_NAME = "grantpilot"

# Extra attributes copied into the JSON record when present
STRUCTURED_FIELDS = (
    "application_id",
    "actor_id",
    "actor_role",
    "transition",
    "from_status",
    "to_status",
    "error_code",
    "reassigned",
    "request_id",
    "duration_ms",
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Attach a JSON stream handler to the grantpilot logger.

    Safe to call more than once; the handler is only installed the first time.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(isinstance(h.formatter, JSONFormatter) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    return logger


def log_transition(
    logger: logging.Logger,
    message: str,
    *,
    application_id: int,
    transition: str,
    actor=None,
    from_status=None,
    to_status=None,
) -> None:
    """Log a committed state transition at INFO with structured extras."""
    extra = {"application_id": application_id, "transition": transition}
    if actor is not None:
        extra["actor_id"] = actor.actor_id
        extra["actor_role"] = actor.role.value
    if from_status is not None:
        extra["from_status"] = getattr(from_status, "value", from_status)
    if to_status is not None:
        extra["to_status"] = getattr(to_status, "value", to_status)
    logger.info(message, extra=extra)
