"""
Push tracking repository (persistence).

Mirrors leads pushed to the dialer. Re-delivering the same
(agency_id, convoso_lead_id) updates the existing row.
"""

from __future__ import annotations

from datetime import datetime

from domain.agency import TrackingRecord
from domain.time import to_iso_utc
from repositories import client as db

_TRACKING_TABLE: str = "convoso_push_tracking"


def upsert_tracking_record(record: TrackingRecord, updated_at: datetime) -> None:
    """
    Insert or update a tracking record on its (agency_id, convoso_lead_id) key.

    Raises:
        RuntimeError if Supabase returns an error response
    """

    payload = {
        "agency_id": record.agency_id,
        "convoso_lead_id": record.convoso_lead_id,
        "internal_lead_id": record.internal_lead_id,
        "list_id": record.list_id,
        "campaign_id": record.campaign_id,
        "status": record.status,
        "updated_at": to_iso_utc(updated_at),
    }
    response = (
        db.get_client()
        .table(_TRACKING_TABLE)
        .upsert(payload, on_conflict="agency_id,convoso_lead_id")
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to track pushed lead: {error}")


__all__ = ["upsert_tracking_record"]
