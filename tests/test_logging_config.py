"""
Tests for `api/logging_config.py`.

Covers:
- Phone numbers are masked in messages and tracebacks
- UUIDs, dialer ids and timestamps are left alone
- Delivery context from `extra=` reaches JSON and text lines
- Reconfiguring replaces the root handler
"""

from __future__ import annotations

import json
import logging
import sys

import pytest

from api.logging_config import (
    DeliveryContextFilter,
    JSONFormatter,
    PhoneRedactionFilter,
    configure_logging,
    redact_phone_numbers,
)
from services.config import Settings


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def _record(msg, *args, **extra):
    record = logging.LogRecord("services.lead_ingestion_service", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.parametrize("raw", [
    "5550102030",
    "(555) 010-2030",
    "555-010-2030",
    "555.010.2030",
    "+1 555 010 2030",
    "15550102030",
])
def test_phone_formats_are_masked(raw):
    assert redact_phone_numbers(f"duplicate phone {raw} found") == "duplicate phone ***2030 found"


@pytest.mark.parametrize("text", [
    "agency 123e4567-e89b-12d3-a456-426614174000",
    "lead CNV-100234",
    "processed at 2025-01-01T12:00:00+00:00",
    "request 4f9a0c2e5b7d4e1f8a3c6b9d0e2f4a6c",
])
def test_identifiers_are_not_masked(text):
    assert redact_phone_numbers(text) == text


def test_filter_masks_formatted_arguments():
    record = _record("Lead %s created (phone %s)", "L1", "5550102030")

    assert PhoneRedactionFilter().filter(record) is True
    assert record.getMessage() == "Lead L1 created (phone ***2030)"


def test_json_line_carries_delivery_context():
    record = _record("Webhook processed: %s", "created", request_id="abc123", lead_id="L1")
    DeliveryContextFilter().filter(record)

    entry = json.loads(JSONFormatter().format(record))

    assert entry["msg"] == "Webhook processed: created"
    assert entry["level"] == "INFO"
    assert entry["request_id"] == "abc123"
    assert entry["lead_id"] == "L1"
    assert "agency_id" not in entry


def test_json_traceback_is_masked():
    try:
        raise RuntimeError("duplicate key (phone_number)=(5550102030)")
    except RuntimeError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

    entry = json.loads(JSONFormatter().format(record))

    assert "5550102030" not in entry["exc"]
    assert "***2030" in entry["exc"]


def test_configure_replaces_root_handler(restore_root_logger, capsys):
    configure_logging(Settings(log_format="json", log_level="DEBUG"))
    handler = configure_logging(Settings(log_format="text", log_level="WARNING"))

    root = restore_root_logger
    assert root.handlers == [handler]
    assert root.level == logging.WARNING
    assert logging.getLogger("urllib3").level == logging.WARNING

    logging.getLogger("api.routers.webhooks").warning(
        "Webhook rejected for %s", "555-010-2030", extra={"request_id": "r-1"}
    )

    line = capsys.readouterr().err.strip()
    assert "[req=r-1 agency=-]" in line
    assert line.endswith("Webhook rejected for ***2030")
