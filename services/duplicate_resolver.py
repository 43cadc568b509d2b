"""
Duplicate resolution for inbound leads.

A delivery is an update when a stored lead matches its `lead_id`, or failing
that its normalized `phone_number`. The lead_id match wins when both identify
different rows.

This lookup alone is not race-free. The unique constraints on `lead_id` and
`phone_number` make the insert that follows it atomic; see
services.lead_ingestion_service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from domain.lead import CanonicalLead
from repositories.lead_repository import get_lead_by_lead_id, get_lead_by_phone


@dataclass(frozen=True, slots=True)
class DuplicateResolution:
    """
    is_update: True if the delivery refers to a stored lead
    existing_key: stored lead_id of the matching row (None for a new lead)
    existing: the stored lead, when found
    """
    is_update: bool
    existing_key: Optional[str] = None
    existing: Optional[CanonicalLead] = None


def resolve_duplicate(lead_id: Optional[str], phone_number: Optional[str]) -> DuplicateResolution:
    if lead_id:
        existing = get_lead_by_lead_id(lead_id)
        if existing is not None:
            return DuplicateResolution(True, existing.lead_id, existing)

    if phone_number:
        existing = get_lead_by_phone(phone_number)
        if existing is not None:
            return DuplicateResolution(True, existing.lead_id, existing)

    return DuplicateResolution(False)


__all__ = ["DuplicateResolution", "resolve_duplicate"]
