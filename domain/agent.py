"""
Domain: Agent (the subset of a portal user relevant to lead assignment).

User accounts are owned by user management; lead routing only reads
eligibility and writes `last_lead_assigned`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .time import require_utc_timestamp

AGENT_ROLE = "agent"


@dataclass(frozen=True, slots=True)
class Agent:
    """
    Portal user considered for round-robin lead assignment.

    `last_lead_assigned` is the sole fairness key: the agent who has gone
    longest without a new lead (NULL meaning never) is served first, ties broken
    by `created_at`.
    """

    user_id: str
    role: str
    is_active: bool
    agency_id: Optional[str] = None
    email: Optional[str] = None
    last_lead_assigned: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.last_lead_assigned is not None:
            require_utc_timestamp("last_lead_assigned", self.last_lead_assigned)
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    def is_eligible(self) -> bool:
        """Only active users with the agent role may receive leads."""
        return self.is_active and self.role == AGENT_ROLE
