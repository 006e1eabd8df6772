"""
Logging setup for the API process.

Records are written to stderr either as one JSON object per line
(LOG_FORMAT=json, the default in containers) or as plain text for local
runs. Tenant/agent/phone context passed through ``extra=`` is kept as
separate JSON fields; phone numbers are masked before they leave the process.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from shared.config import get_settings

# Attributes lifted from ``extra=`` into the JSON document
CONTEXT_FIELDS = ("tenant_id", "agent_id", "customer_phone", "request_path")

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"


def mask_phone(phone: Any) -> str:
    """
    Keep only the last four digits of a phone number.

    Example:
        >>> mask_phone("5511988887777")
        '*********7777'
    """
    text = str(phone or "")
    if len(text) <= 4:
        return text
    return "*" * (len(text) - 4) + text[-4:]


class JSONFormatter(logging.Formatter):
    """One JSON document per record: timestamp, level, logger, message and context."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is None:
                continue
            entry[name] = mask_phone(value) if name == "customer_phone" else value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


def configure_logging() -> None:
    """
    Install a single stderr handler on the root logger.

    LOG_LEVEL picks the level (INFO when unknown), LOG_FORMAT picks
    "json" or "text".
    """
    settings = get_settings()
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    use_json = settings.LOG_FORMAT.strip().lower() != "text"

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if use_json else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root.info(f"Logging configured | level={logging.getLevelName(level)} | format={'json' if use_json else 'text'}")
