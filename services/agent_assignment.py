"""
Round-robin agent assignment.

The eligible agent who has gone longest without a new lead (never assigned
first, ties broken by account age) receives the next one.

Candidate read and stamp are made atomic by a compare-and-set on
`last_lead_assigned` (see repositories.user_repository.claim_agent): if a
concurrent assignment stamps the chosen agent first, the claim fails and the
next candidate is tried. Each round re-reads the pool, so a loser sees the
winner's new stamp.

When a lead_id is given, the stamp and the lead's agent_assignment are
written in one database transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from domain.time import require_utc_timestamp, utc_now
from repositories.user_repository import claim_agent, list_eligible_agents

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 5


def assign_next_agent(
    agency_id: Optional[str] = None,
    *,
    lead_id: Optional[str] = None,
    now: Optional[datetime] = None,
    max_rounds: int = DEFAULT_MAX_ROUNDS,
) -> Optional[str]:
    """
    Pick and stamp the least recently assigned eligible agent.

    Args:
        agency_id: restrict the pool to one agency (None = all agents)
        lead_id: lead to route to the claimed agent; a lead that already has
            an agent keeps it
        now: assignment timestamp (UTC); defaults to now
        max_rounds: how many times the pool is re-read after lost races

    Returns:
        The lead's agent user id, or None if there is no eligible agent
        (or every claim lost its race for `max_rounds` rounds)
    """

    assigned_at = now or utc_now()
    require_utc_timestamp("now", assigned_at)

    for round_number in range(1, max_rounds + 1):
        candidates = [agent for agent in list_eligible_agents(agency_id) if agent.is_eligible()]
        if not candidates:
            logger.info("No eligible agents%s; lead left unassigned",
                        f" in agency {agency_id}" if agency_id else "")
            return None

        for agent in candidates:
            claimed = claim_agent(agent, assigned_at, lead_id)
            if claimed:
                logger.info("Assigned lead %s to agent %s", lead_id or "-", claimed)
                return claimed
            logger.debug("Lost assignment race for agent %s (round %d)",
                         agent.user_id, round_number)

    logger.warning("Could not claim an agent after %d rounds; lead left unassigned", max_rounds)
    return None


__all__ = ["assign_next_agent"]
