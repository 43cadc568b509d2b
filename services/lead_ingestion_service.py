"""
Webhook lead ingestion.

Orchestrates one inbound delivery:

    normalize -> require identifiers -> resolve duplicate
      -> update the stored lead, or
      -> insert a new lead, then assign an agent
    -> bump the analytics counters

Atomicity:
- A new lead is inserted before any agent is claimed. If a concurrent
  delivery of the same lead_id or phone wins the insert, the unique
  constraint rejects ours, the delivery is re-resolved and applied as an
  update.
- Agent claims are compare-and-set (see services.agent_assignment), so two
  new leads never take the same least recently assigned agent. The claim and
  the lead's agent_assignment commit together.
- A stored lead that has no agent (its first delivery failed before the
  claim) is routed when it is delivered again. The claim locks the lead row
  and keeps an agent that is already there, so each lead stamps one agent.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from domain.agency import is_valid_uuid
from domain.lead import CanonicalLead, IngestionAction, IngestionResult
from domain.time import require_utc_timestamp, utc_now
from repositories.lead_repository import (
    DuplicateLeadError,
    insert_lead,
    record_lead_analytics,
    update_lead_fields,
)
from services.agent_assignment import assign_next_agent
from services.duplicate_resolver import resolve_duplicate
from services.errors import LeadValidationError
from services.lead_normalizer import mask_phone, normalize_lead

logger = logging.getLogger(__name__)


def _update_existing(
    existing_key: str,
    lead: CanonicalLead,
    agency_id: Optional[str],
    now: datetime,
) -> IngestionResult:
    stored = update_lead_fields(existing_key, lead, now)

    agent_id = stored.agent_assignment
    if agent_id is None:
        # An earlier delivery stored the lead but never routed it
        agent_id = assign_next_agent(agency_id, lead_id=str(stored.lead_id), now=now)

    logger.info("Lead %s updated (delivered as %s, phone %s, agent %s)",
                stored.lead_id, lead.lead_id, mask_phone(lead.phone_number), agent_id or "unassigned")
    return IngestionResult(
        lead_id=str(stored.lead_id),
        status=stored.status.value,
        agent_assignment=agent_id,
        action=IngestionAction.UPDATED,
        processed_at=now,
    )


def _create_new(lead: CanonicalLead, agency_id: Optional[str], now: datetime) -> IngestionResult:
    stored = insert_lead(lead, agency_id)

    agent_id = assign_next_agent(agency_id, lead_id=str(stored.lead_id), now=now)

    logger.info("Lead %s created (phone %s, agent %s)",
                stored.lead_id, mask_phone(stored.phone_number), agent_id or "unassigned")
    return IngestionResult(
        lead_id=str(stored.lead_id),
        status=stored.status.value,
        agent_assignment=agent_id,
        action=IngestionAction.CREATED,
        processed_at=now,
    )


def ingest_webhook_lead(
    payload: Mapping[str, Any],
    *,
    agency_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> IngestionResult:
    """
    Store one webhook delivery as a new or updated lead.

    Args:
        payload: raw webhook body (already JSON-decoded)
        agency_id: owning agency for per-agency webhooks; scopes the agent pool
        now: processing timestamp (UTC); defaults to now

    Returns:
        IngestionResult describing the stored lead

    Raises:
        LeadValidationError: agency_id is not a UUID, or lead_id/phone missing
    """

    if agency_id is not None and not is_valid_uuid(agency_id):
        raise LeadValidationError("Invalid agency ID format")

    processed_at = now or utc_now()
    require_utc_timestamp("now", processed_at)

    lead = normalize_lead(payload, received_at=processed_at)
    if not lead.has_identity():
        raise LeadValidationError("Missing required fields: lead_id or phone_number")

    resolution = resolve_duplicate(lead.lead_id, lead.phone_number)
    if resolution.is_update and resolution.existing_key is not None:
        result = _update_existing(resolution.existing_key, lead, agency_id, processed_at)
    else:
        try:
            result = _create_new(lead, agency_id, processed_at)
        except DuplicateLeadError:
            logger.info("Lead %s inserted concurrently; applying as update", lead.lead_id)
            resolution = resolve_duplicate(lead.lead_id, lead.phone_number)
            if resolution.existing_key is None:
                raise
            result = _update_existing(resolution.existing_key, lead, agency_id, processed_at)

    try:
        record_lead_analytics(lead, processed_at.date(), agency_id)
    except Exception:
        logger.exception("Failed to update lead analytics for %s", result.lead_id)

    return result


__all__ = ["ingest_webhook_lead"]
