"""
Portal user repository (persistence).

Agents are the portal users eligible for lead assignment. This module reads
eligibility, claims agents for leads through the `claim_agent_for_lead`
function (see sql/001_lead_routing.sql), and serves the user-side queries
of the reconciliation sweep.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from domain.agent import AGENT_ROLE, Agent
from domain.time import parse_utc_timestamp, to_iso_utc
from repositories import client as db
from repositories.paging import chunked, fetch_all

_USERS_TABLE: str = "portal_users"


def _row_to_agent(row: Mapping[str, Any]) -> Agent:
    """Convert a Supabase row into an Agent."""

    agency_id = row.get("agency_id")
    return Agent(
        user_id=str(row["id"]),
        role=str(row.get("role") or ""),
        is_active=bool(row.get("is_active", False)),
        agency_id=str(agency_id) if agency_id is not None else None,
        email=row.get("email"),
        last_lead_assigned=parse_utc_timestamp(row.get("last_lead_assigned")),
        created_at=parse_utc_timestamp(row.get("created_at")),
    )


def list_eligible_agents(agency_id: Optional[str] = None) -> List[Agent]:
    """
    List active agents, least recently assigned first.

    Order: last_lead_assigned ASC NULLS FIRST, then created_at ASC, then id.

    Args:
        agency_id: restrict the pool to one agency (None = all agencies)
    """

    def build_query():
        query = (
            db.get_client()
            .table(_USERS_TABLE)
            .select("id, role, is_active, agency_id, email, last_lead_assigned, created_at")
            .eq("role", AGENT_ROLE)
            .eq("is_active", True)
        )
        if agency_id is not None:
            query = query.eq("agency_id", agency_id)
        return (
            query.order("last_lead_assigned", desc=False, nullsfirst=True)
            .order("created_at", desc=False)
            .order("id", desc=False)
        )

    rows = fetch_all(build_query, "list eligible agents")
    return [_row_to_agent(row) for row in rows]


def claim_agent(agent: Agent, assigned_at: datetime, lead_id: Optional[str] = None) -> Optional[str]:
    """
    Stamp `last_lead_assigned` only if nobody else did since it was read,
    and route `lead_id` to the agent in the same transaction.

    Runs as the `claim_agent_for_lead` Postgres function: the stamp is a
    compare-and-set against `agent.last_lead_assigned`, and the lead's
    `agent_assignment` is written in the same commit, so a failure never
    leaves a stamped agent without its lead. A lead that already has an
    agent keeps it.

    Args:
        agent: candidate as read from the pool
        assigned_at: new stamp (UTC)
        lead_id: lead to route; None stamps the agent only

    Returns:
        The lead's agent id (the claimed agent, or the one it already had),
        or None if the race for this agent was lost
    """

    observed = agent.last_lead_assigned
    response = db.get_client().rpc(
        "claim_agent_for_lead",
        {
            "p_agent_id": agent.user_id,
            "p_observed": to_iso_utc(observed) if observed is not None else None,
            "p_assigned_at": to_iso_utc(assigned_at),
            "p_lead_id": lead_id,
        },
    ).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to claim agent {agent.user_id}: {error}")

    claimed = getattr(response, "data", None)
    return str(claimed) if claimed else None


def get_agency_ids_for_users(user_ids: Iterable[str]) -> Dict[str, Optional[str]]:
    """
    Map user id -> agency_id for the given users.

    Users that do not exist are absent from the result.
    """

    ids = sorted({str(user_id) for user_id in user_ids})
    agencies: Dict[str, Optional[str]] = {}

    for batch in chunked(ids):
        response = (
            db.get_client()
            .table(_USERS_TABLE)
            .select("id, agency_id")
            .in_("id", list(batch))
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to fetch agent agencies: {error}")

        for row in getattr(response, "data", None) or []:
            agency_id = row.get("agency_id")
            agencies[str(row["id"])] = str(agency_id) if agency_id is not None else None

    return agencies


def list_users_outside_agencies(valid_agency_ids: Iterable[str]) -> List[Dict[str, Any]]:
    """
    Find users whose (non-null) agency_id is not one of `valid_agency_ids`.

    Every user with an agency is read and the membership test is done here,
    so the valid set can be any size.

    Returns raw rows with id, email and agency_id.
    """

    valid = {str(agency_id) for agency_id in valid_agency_ids}
    rows = fetch_all(
        lambda: db.get_client()
        .table(_USERS_TABLE)
        .select("id, email, agency_id")
        .not_.is_("agency_id", "null")
        .order("id"),
        "find orphaned users",
    )
    return [row for row in rows if str(row["agency_id"]) not in valid]


def reassign_users_to_agency(user_ids: Iterable[str], agency_id: str, updated_at: datetime) -> int:
    """
    Bulk move users to `agency_id`.

    Returns:
        Number of rows updated
    """

    ids = sorted({str(user_id) for user_id in user_ids})
    updated = 0

    for batch in chunked(ids):
        response = (
            db.get_client()
            .table(_USERS_TABLE)
            .update({"agency_id": agency_id, "updated_at": to_iso_utc(updated_at)})
            .in_("id", list(batch))
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to reassign users: {error}")

        updated += len(getattr(response, "data", None) or [])

    return updated


__all__ = [
    "list_eligible_agents",
    "claim_agent",
    "get_agency_ids_for_users",
    "list_users_outside_agencies",
    "reassign_users_to_agency",
]
