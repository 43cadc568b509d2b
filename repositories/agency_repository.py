"""
Agency repository (persistence).

Reads agency dialer integrations and maintains the agency rows the
reconciliation sweep guarantees.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

from domain.agency import AgencyIntegration, DialerList
from domain.time import to_iso_utc
from repositories import client as db
from repositories.paging import fetch_all

_AGENCIES_TABLE: str = "agencies"


def _row_to_integration(row: Mapping[str, Any]) -> AgencyIntegration:
    """Convert a Supabase agency row into an AgencyIntegration."""

    raw_lists = row.get("lists") or []
    lists = tuple(
        DialerList.from_mapping(item)
        for item in raw_lists
        if isinstance(item, Mapping) and item.get("id") is not None
    )
    return AgencyIntegration(
        agency_id=str(row["id"]),
        name=str(row.get("agency_name") or row.get("name") or ""),
        is_active=bool(row.get("is_active", False)),
        convoso_auth_token=row.get("convoso_auth_token"),
        lists=lists,
    )


def get_active_integration(agency_id: str) -> Optional[AgencyIntegration]:
    """
    Fetch an active agency's dialer integration.

    Callers must validate `agency_id` as a UUID first; the store rejects
    malformed identifiers with an error rather than an empty result.

    Returns:
        AgencyIntegration, or None if the agency is missing or inactive
    """

    response = (
        db.get_client()
        .table(_AGENCIES_TABLE)
        .select("*")
        .eq("id", agency_id)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch agency: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None
    return _row_to_integration(rows[0])


def touch_last_sync(agency_id: str, synced_at: datetime) -> None:
    """Record the time of the agency's latest successful dialer push."""

    response = (
        db.get_client()
        .table(_AGENCIES_TABLE)
        .update({"last_sync": to_iso_utc(synced_at)})
        .eq("id", agency_id)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to update agency last_sync: {error}")


def upsert_agencies(rows: Iterable[Mapping[str, Any]]) -> None:
    """Insert or refresh agency rows by primary key."""

    payload = [dict(row) for row in rows]
    if not payload:
        return

    response = (
        db.get_client()
        .table(_AGENCIES_TABLE)
        .upsert(payload, on_conflict="id")
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to upsert agencies: {error}")


def list_active_agency_ids() -> List[str]:
    rows = fetch_all(
        lambda: db.get_client()
        .table(_AGENCIES_TABLE)
        .select("id")
        .eq("is_active", True)
        .order("id"),
        "list agencies",
    )
    return [str(row["id"]) for row in rows]


__all__ = [
    "get_active_integration",
    "touch_last_sync",
    "upsert_agencies",
    "list_active_agency_ids",
]
