"""
Lead repository (persistence).

This module provides *only* persistence operations for the canonical Lead in
the `convoso_leads` table. Deduplication and assignment decisions live in the
services.

The table carries unique constraints on `lead_id` and on `phone_number`
(see sql/001_lead_routing.sql); an insert that loses a race against a
concurrent delivery surfaces as DuplicateLeadError.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping, Optional

from postgrest.exceptions import APIError

from domain.lead import CanonicalLead, LeadPriority, LeadStatus
from domain.time import parse_utc_timestamp, to_iso_utc
from repositories import client as db

# Supabase table name for inbound dialer leads.
# Keep this aligned with your database schema.
_LEADS_TABLE: str = "convoso_leads"

_UNIQUE_VIOLATION = "23505"

# Columns refreshed when a known lead is delivered again. Identity
# (lead_id, phone_number), created_at and the assignment/lifecycle columns
# are never overwritten.
_UPDATABLE_COLUMNS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "email",
    "address",
    "city",
    "state",
    "zip_code",
    "age",
    "gender",
    "source",
    "campaign_id",
    "campaign_name",
    "cost",
    "insurance_type",
    "coverage_type",
    "current_carrier",
    "policy_expires",
    "priority",
    "lead_score",
    "notes",
    "additional_data",
)


class DuplicateLeadError(Exception):
    """Raised when an insert collides with an existing lead_id or phone_number."""


def _lead_to_row(lead: CanonicalLead, agency_id: Optional[str] = None) -> dict[str, Any]:
    """Convert a CanonicalLead to a Supabase row payload."""

    row: dict[str, Any] = {
        # Identity
        "lead_id": lead.lead_id,
        "external_id": lead.external_id,
        "phone_number": lead.phone_number,

        # Contact
        "first_name": lead.first_name,
        "last_name": lead.last_name,
        "email": lead.email,
        "address": lead.address,
        "city": lead.city,
        "state": lead.state,
        "zip_code": lead.zip_code,
        "age": lead.age,
        "gender": lead.gender,

        # Classification
        "source": lead.source,
        "campaign_id": lead.campaign_id,
        "campaign_name": lead.campaign_name,
        "cost": lead.cost,
        "insurance_type": lead.insurance_type,
        "coverage_type": lead.coverage_type,
        "current_carrier": lead.current_carrier,
        "policy_expires": lead.policy_expires,
        "priority": lead.priority.value,
        "lead_score": lead.lead_score,
        "notes": lead.notes,

        # Assignment
        "agent_assignment": lead.agent_assignment,
        "status": lead.status.value,
        "call_attempts": lead.call_attempts,

        # Bookkeeping
        "additional_data": dict(lead.additional_data),
        "received_at": to_iso_utc(lead.received_at),
        "created_at": to_iso_utc(lead.created_at),
        "updated_at": to_iso_utc(lead.updated_at),
    }
    if agency_id is not None:
        row["agency_id"] = agency_id
    return row


def _row_to_lead(row: Mapping[str, Any]) -> CanonicalLead:
    """Convert a Supabase row into a CanonicalLead."""

    created_at = parse_utc_timestamp(row["created_at"])
    priority = row.get("priority") or LeadPriority.NORMAL.value
    status = row.get("status") or LeadStatus.NEW.value

    return CanonicalLead(
        lead_id=str(row["lead_id"]),
        external_id=row.get("external_id"),
        phone_number=row.get("phone_number"),
        first_name=row.get("first_name"),
        last_name=row.get("last_name"),
        email=row.get("email"),
        address=row.get("address"),
        city=row.get("city"),
        state=row.get("state"),
        zip_code=row.get("zip_code"),
        age=row.get("age"),
        gender=row.get("gender"),
        source=row.get("source") or "convoso",
        campaign_id=row.get("campaign_id"),
        campaign_name=row.get("campaign_name"),
        cost=float(row.get("cost") or 0),
        insurance_type=row.get("insurance_type") or "auto",
        coverage_type=row.get("coverage_type"),
        current_carrier=row.get("current_carrier"),
        policy_expires=row.get("policy_expires"),
        priority=LeadPriority(priority),
        lead_score=int(row.get("lead_score") or 0),
        notes=row.get("notes"),
        agent_assignment=row.get("agent_assignment"),
        status=LeadStatus(status),
        call_attempts=int(row.get("call_attempts") or 0),
        additional_data=row.get("additional_data") or {},
        received_at=parse_utc_timestamp(row.get("received_at")) or created_at,
        created_at=created_at,
        updated_at=parse_utc_timestamp(row.get("updated_at")) or created_at,
    )


def _find_one(column: str, value: str) -> Optional[CanonicalLead]:
    response = (
        db.get_client()
        .table(_LEADS_TABLE)
        .select("*")
        .eq(column, value)
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch lead by {column}: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None
    return _row_to_lead(rows[0])


def get_lead_by_lead_id(lead_id: str) -> Optional[CanonicalLead]:
    """Fetch a lead by the dialer's lead_id. None if absent."""

    return _find_one("lead_id", lead_id)


def get_lead_by_phone(phone_number: str) -> Optional[CanonicalLead]:
    """Fetch a lead by normalized phone number. None if absent."""

    return _find_one("phone_number", phone_number)


def insert_lead(lead: CanonicalLead, agency_id: Optional[str] = None) -> CanonicalLead:
    """
    Insert a new lead.

    Raises:
    - DuplicateLeadError if lead_id or phone_number already exists
    - RuntimeError if Supabase returns an error response
    """

    payload = _lead_to_row(lead, agency_id)
    try:
        response = db.get_client().table(_LEADS_TABLE).insert(payload).execute()
    except APIError as exc:
        if exc.code == _UNIQUE_VIOLATION:
            raise DuplicateLeadError(
                f"Lead {lead.lead_id} collides with an existing lead"
            ) from exc
        raise

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to insert lead: {error}")

    rows = getattr(response, "data", None) or []
    return _row_to_lead(rows[0]) if rows else lead


def update_lead_fields(
    existing_lead_id: str,
    lead: CanonicalLead,
    updated_at: datetime,
) -> CanonicalLead:
    """
    Refresh the mutable columns of an existing lead from a new delivery.

    The stored row keeps its lead_id, phone_number, created_at, status,
    agent assignment and call attempts.
    """

    source_row = _lead_to_row(lead)
    payload = {column: source_row[column] for column in _UPDATABLE_COLUMNS}
    payload["updated_at"] = to_iso_utc(updated_at)

    response = (
        db.get_client()
        .table(_LEADS_TABLE)
        .update(payload)
        .eq("lead_id", existing_lead_id)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to update lead {existing_lead_id}: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        raise RuntimeError(f"Lead {existing_lead_id} disappeared during update")
    return _row_to_lead(rows[0])


def record_lead_analytics(
    lead: CanonicalLead,
    day: date,
    agency_id: Optional[str] = None,
) -> None:
    """
    Bump the per-day, per-source lead counters.

    Runs as the `increment_lead_analytics` Postgres function so that the
    counter and running average update in one statement.
    """

    response = db.get_client().rpc(
        "increment_lead_analytics",
        {
            "p_date": day.isoformat(),
            "p_source": lead.source,
            "p_agency_id": agency_id,
            "p_campaign_id": lead.campaign_id or "",
            "p_cost": lead.cost,
            "p_lead_score": lead.lead_score,
        },
    ).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to update lead analytics: {error}")


__all__ = [
    "DuplicateLeadError",
    "get_lead_by_lead_id",
    "get_lead_by_phone",
    "insert_lead",
    "update_lead_fields",
    "record_lead_analytics",
]
