"""
Domain: canonical Lead entity.

A Lead is a prospective customer record originating from the dialer webhook.
It is the output of lead normalization and the unit of persistence for the
`convoso_leads` table.

Invariants:
- `lead_id` (the dialer's ID) is the natural key; `phone_number` identifies the
  same lead even under a different `lead_id`.
- `phone_number` is digits-only, 10 or 11 digits, when present.
- All timestamps are UTC.
- A freshly ingested lead is `new`, unassigned, with zero call attempts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from .time import require_utc_timestamp

DEFAULT_LEAD_SCORE = 50


class LeadPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    LOST = "lost"


class IngestionAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass(frozen=True, slots=True)
class CanonicalLead:
    """
    Lead record after normalization, independent of the dialer's field names.

    Unmapped input fields travel in `additional_data` so that payload changes on
    the dialer side are never dropped.
    """

    lead_id: Optional[str]
    phone_number: Optional[str]
    received_at: datetime
    created_at: datetime
    updated_at: datetime

    external_id: Optional[str] = None

    # Contact
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None

    # Classification
    source: str = "convoso"
    campaign_id: Optional[str] = None
    campaign_name: Optional[str] = None
    cost: float = 0.0
    insurance_type: str = "auto"
    coverage_type: Optional[str] = None
    current_carrier: Optional[str] = None
    policy_expires: Optional[str] = None
    priority: LeadPriority = LeadPriority.NORMAL
    lead_score: int = DEFAULT_LEAD_SCORE
    notes: Optional[str] = None

    # Assignment
    agent_assignment: Optional[str] = None
    status: LeadStatus = LeadStatus.NEW
    call_attempts: int = 0

    additional_data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        require_utc_timestamp("received_at", self.received_at)
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)
        if self.phone_number is not None:
            if not self.phone_number.isdigit() or not 10 <= len(self.phone_number) <= 11:
                raise ValueError("phone_number must be 10 or 11 digits")

    def has_identity(self) -> bool:
        """Both identifiers are required before a lead may be stored."""
        return bool(self.lead_id) and bool(self.phone_number)


@dataclass(frozen=True, slots=True)
class IngestionResult:
    """Outcome of one webhook delivery."""

    lead_id: str
    status: str
    agent_assignment: Optional[str]
    action: IngestionAction
    processed_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("processed_at", self.processed_at)
