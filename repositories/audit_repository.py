"""
Audit repository (persistence).

Append-only records: administrative actions go to `audit_logs`, every inbound
webhook delivery to `webhook_logs`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from domain.time import to_iso_utc
from repositories import client as db

_AUDIT_TABLE: str = "audit_logs"
_WEBHOOK_LOG_TABLE: str = "webhook_logs"


def insert_audit_log(
    action: str,
    resource_type: str,
    details: str,
    metadata: Mapping[str, Any],
    occurred_at: datetime,
    user_id: Optional[str] = None,
    agency_id: Optional[str] = None,
) -> None:
    payload = {
        "user_id": user_id,
        "agency_id": agency_id,
        "action": action,
        "resource_type": resource_type,
        "details": details,
        "metadata": dict(metadata),
        "timestamp": to_iso_utc(occurred_at),
    }
    response = db.get_client().table(_AUDIT_TABLE).insert(payload).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to write audit log: {error}")


def insert_webhook_log(entry: Mapping[str, Any]) -> None:
    """Store one webhook delivery record (request id, status, outcome)."""

    response = db.get_client().table(_WEBHOOK_LOG_TABLE).insert(dict(entry)).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to write webhook log: {error}")


__all__ = ["insert_audit_log", "insert_webhook_log"]
