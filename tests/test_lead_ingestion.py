"""
Tests for `services/lead_ingestion_service.py` (with the duplicate resolver).

Covers:
- Idempotent ingestion: same lead_id twice -> one row, second is an update
- Phone-based dedup: different lead_id, same phone -> one row
- New leads are assigned round-robin; updates never re-assign
- A lost insert race falls back to an update without claiming an agent
- A lead stored without an agent is routed on its next delivery
- Validation failures and non-fatal analytics
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from domain.lead import IngestionAction
from domain.time import to_iso_utc
from services import duplicate_resolver
from services.duplicate_resolver import DuplicateResolution, resolve_duplicate
from services.errors import LeadValidationError
from services.lead_ingestion_service import ingest_webhook_lead

T1 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
T2 = T1 + timedelta(hours=1)
AGENCY = "123e4567-e89b-12d3-a456-426614174000"


def _agent(user_id, last_assigned=None, agency_id=None):
    return {
        "id": user_id,
        "role": "agent",
        "is_active": True,
        "agency_id": agency_id,
        "last_lead_assigned": to_iso_utc(last_assigned) if last_assigned else None,
        "created_at": to_iso_utc(T1 - timedelta(days=30)),
    }


def test_same_lead_id_twice_is_one_row_updated(fake_db):
    fake_db.seed("portal_users", _agent("agent-1"))

    first = ingest_webhook_lead({"lead_id": "L1", "phone": "555-010-2030", "first_name": "Jane"}, now=T1)
    second = ingest_webhook_lead({"lead_id": "L1", "phone": "555-010-2030", "first_name": "Janet"}, now=T2)

    rows = fake_db.rows("convoso_leads")
    assert len(rows) == 1
    assert rows[0]["first_name"] == "Janet"
    assert rows[0]["created_at"] == to_iso_utc(T1)
    assert rows[0]["updated_at"] == to_iso_utc(T2)

    assert first.action is IngestionAction.CREATED
    assert second.action is IngestionAction.UPDATED
    assert second.agent_assignment == first.agent_assignment == "agent-1"


def test_same_phone_different_lead_id_is_one_row(fake_db):
    ingest_webhook_lead({"lead_id": "L1", "phone": "(555) 010-2030", "city": "Austin"}, now=T1)
    result = ingest_webhook_lead({"lead_id": "L2", "phoneNumber": "555.010.2030", "city": "Dallas"}, now=T2)

    rows = fake_db.rows("convoso_leads")
    assert len(rows) == 1
    assert rows[0]["lead_id"] == "L1"
    assert rows[0]["city"] == "Dallas"
    assert result.lead_id == "L1"
    assert result.action is IngestionAction.UPDATED


def test_lead_id_match_takes_precedence_over_phone(fake_db):
    ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030"}, now=T1)
    ingest_webhook_lead({"lead_id": "L2", "phone": "5550109999"}, now=T1)

    resolution = resolve_duplicate("L2", "5550102030")

    assert resolution.is_update
    assert resolution.existing_key == "L2"


def test_new_lead_is_assigned_and_agent_stamped(fake_db):
    fake_db.seed(
        "portal_users",
        _agent("busy", T1 - timedelta(minutes=1)),
        _agent("idle", T1 - timedelta(hours=5)),
    )

    result = ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030"}, now=T1)

    assert result.agent_assignment == "idle"
    assert result.status == "new"
    assert fake_db.rows("convoso_leads")[0]["agent_assignment"] == "idle"
    idle = next(row for row in fake_db.rows("portal_users") if row["id"] == "idle")
    assert idle["last_lead_assigned"] == to_iso_utc(T1)


def test_no_agents_leaves_lead_unassigned(fake_db):
    result = ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030"}, now=T1)

    assert result.agent_assignment is None
    assert fake_db.rows("convoso_leads")[0]["agent_assignment"] is None


def test_agency_webhook_scopes_pool_and_stores_agency(fake_db):
    fake_db.seed("portal_users", _agent("elsewhere"), _agent("ours", T1 - timedelta(hours=1), agency_id=AGENCY))

    result = ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030"}, agency_id=AGENCY, now=T1)

    assert result.agent_assignment == "ours"
    assert fake_db.rows("convoso_leads")[0]["agency_id"] == AGENCY


def test_lost_insert_race_becomes_update_without_assignment(fake_db):
    """A concurrent delivery inserted the lead between our check and insert."""

    fake_db.seed("portal_users", _agent("agent-1"))
    ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030", "first_name": "Jane"}, now=T1)
    stamp_after_first = fake_db.rows("portal_users")[0]["last_lead_assigned"]

    with patch(
        "services.lead_ingestion_service.resolve_duplicate",
        side_effect=[DuplicateResolution(False), duplicate_resolver.resolve_duplicate("L1", "5550102030")],
    ):
        result = ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030", "first_name": "Janet"}, now=T2)

    assert result.action is IngestionAction.UPDATED
    assert len(fake_db.rows("convoso_leads")) == 1
    assert fake_db.rows("convoso_leads")[0]["first_name"] == "Janet"
    assert fake_db.rows("portal_users")[0]["last_lead_assigned"] == stamp_after_first


def test_failed_claim_leaves_agent_untouched_and_redelivery_assigns(fake_db):
    """The agent stamp and the lead's assignment are written together or not at all."""

    fake_db.seed("portal_users", _agent("agent-1"))
    real_claim = fake_db.rpc_handlers["claim_agent_for_lead"]

    def connection_reset(_params):
        raise RuntimeError("connection reset")

    fake_db.rpc_handlers["claim_agent_for_lead"] = connection_reset
    with pytest.raises(RuntimeError, match="connection reset"):
        ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030"}, now=T1)

    assert fake_db.rows("convoso_leads")[0]["agent_assignment"] is None
    assert fake_db.rows("portal_users")[0]["last_lead_assigned"] is None

    fake_db.rpc_handlers["claim_agent_for_lead"] = real_claim
    result = ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030"}, now=T2)

    assert result.action is IngestionAction.UPDATED
    assert result.agent_assignment == "agent-1"
    assert fake_db.rows("convoso_leads")[0]["agent_assignment"] == "agent-1"
    assert fake_db.rows("portal_users")[0]["last_lead_assigned"] == to_iso_utc(T2)


def test_redelivery_keeps_existing_agent_and_stamps_nobody(fake_db):
    fake_db.seed("portal_users", _agent("agent-1"), _agent("agent-2", T1 - timedelta(days=1)))
    ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030"}, now=T1)
    stamps = {row["id"]: row["last_lead_assigned"] for row in fake_db.rows("portal_users")}

    result = ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030"}, now=T2)

    assert result.agent_assignment == "agent-1"
    assert {row["id"]: row["last_lead_assigned"] for row in fake_db.rows("portal_users")} == stamps


@pytest.mark.parametrize("payload", [
    {"phone": "5550102030"},
    {"lead_id": "L1"},
    {"lead_id": "L1", "phone": "12345"},
])
def test_missing_identifiers_are_rejected(fake_db, payload):
    with pytest.raises(LeadValidationError, match="Missing required fields"):
        ingest_webhook_lead(payload, now=T1)

    assert fake_db.calls == []


def test_invalid_agency_id_is_rejected_before_any_query(fake_db):
    with pytest.raises(LeadValidationError):
        ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030"}, agency_id="agency-1", now=T1)

    assert fake_db.calls == []


def test_analytics_are_recorded(fake_db):
    ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030", "cost": "2.5", "source": "web"}, now=T1)

    name, params = next(call for call in fake_db.rpc_calls if call[0] == "increment_lead_analytics")
    assert params["p_date"] == "2025-01-01"
    assert params["p_source"] == "web"
    assert params["p_cost"] == 2.5


def test_analytics_failure_is_not_fatal(fake_db):
    def broken(_params):
        raise RuntimeError("analytics table locked")

    fake_db.rpc_handlers["increment_lead_analytics"] = broken

    result = ingest_webhook_lead({"lead_id": "L1", "phone": "5550102030"}, now=T1)

    assert result.action is IngestionAction.CREATED
    assert len(fake_db.rows("convoso_leads")) == 1
