"""
Structured JSON logging for the Homezy lifecycle processes.

Every line is one JSON object tagged with the emitting process (`homezy-api`,
`homezy-worker`, ...). Lead, reminder and job identifiers passed through
`extra=` are lifted into top-level keys so log queries can filter on them.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from shared.config import get_settings

# Identifiers copied from `extra=` into the payload
CONTEXT_FIELDS = (
    "job_name",
    "lead_id",
    "reminder_id",
    "homeowner_id",
    "professional_id",
    "notification_id",
    "request_path",
)

# Per-request chatter from HTTP and SQL clients
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


class JSONFormatter(logging.Formatter):
    """
    Render records as JSON with timestamp, level, service, logger and message,
    plus any CONTEXT_FIELDS present on the record.
    """

    def __init__(self, service: str):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                # UUIDs and enums
                log_data[name] = str(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(service: str = "homezy-api") -> None:
    """
    Send JSON logs for `service` to stderr at LOG_LEVEL.

    Client libraries listed in QUIET_LOGGERS only report warnings and up.
    """
    settings = get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter(service))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    root_logger.info(f"Logging configured for {service}: level={settings.LOG_LEVEL}")
