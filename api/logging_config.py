"""
Logging setup for the lead routing API and scripts.

- LOG_FORMAT=text (default) writes one readable line per record; LOG_FORMAT=json
  writes one JSON object per line for log shipping.
- Delivery context passed with `extra={"request_id": ..., "agency_id": ...,
  "lead_id": ...}` is carried on every line.
- Phone numbers are masked to their last four digits before any handler
  formats the record, including numbers inside exception messages.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Optional

from services.config import Settings, get_settings

CONTEXT_FIELDS = ("request_id", "agency_id", "lead_id")

# 10 digits (optionally +1 / 1 prefixed) with the usual US separators;
# word boundaries keep UUIDs and dialer ids intact
_PHONE_PATTERN = re.compile(
    r"(?<![\w+])(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?(\d{4})(?!\w)"
)

# Client libraries that log every HTTP request at INFO
_QUIET_LOGGERS = (
    "urllib3",
    "httpx",
    "httpcore",
    "hpack",
    "postgrest",
)


def redact_phone_numbers(text: str) -> str:
    return _PHONE_PATTERN.sub(lambda match: f"***{match.group(1)}", text)


class PhoneRedactionFilter(logging.Filter):
    """Rewrite the rendered message with phone numbers masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_phone_numbers(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class DeliveryContextFilter(logging.Filter):
    """Give every record the delivery context attributes, "-" when unset."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name in CONTEXT_FIELDS:
            if getattr(record, name, None) is None:
                setattr(record, name, "-")
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value not in (None, "-"):
                entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = redact_phone_numbers(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [req=%(request_id)s agency=%(agency_id)s] %(message)s"


def configure_logging(settings: Optional[Settings] = None) -> logging.Handler:
    """
    Install a single stderr handler on the root logger.

    Calling it again replaces the previous handler.

    Returns:
        The installed handler
    """

    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(DeliveryContextFilter())
    handler.addFilter(PhoneRedactionFilter())
    if settings.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler


__all__ = [
    "CONTEXT_FIELDS",
    "JSONFormatter",
    "PhoneRedactionFilter",
    "DeliveryContextFilter",
    "configure_logging",
    "redact_phone_numbers",
]
