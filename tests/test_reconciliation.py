"""
Tests for `services/reconciliation_service.py`.

Covers:
- System agencies are ensured
- Users pointing at unknown agencies move to the fallback agency
- Sales without an agency are backfilled from their agent (and only once)
- Missing commissions are created exactly once
- Step failures are isolated and reported; the run is always audited
- Tables larger than one response page are read in full
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

from services.reconciliation_service import (
    FALLBACK_AGENCY_ID,
    SYSTEM_AGENCY_ID,
    run_reconciliation_sweep,
)

NOW = datetime(2025, 4, 1, 3, 0, 0, tzinfo=timezone.utc)
AGENCY_X = "b0000000-0000-0000-0000-00000000000a"
DELETED_AGENCY = "dead0000-0000-0000-0000-000000000000"


def _sale(sale_id, agent_id, agency_id=None, commission_amount=None, premium=None, status="active"):
    return {
        "id": sale_id,
        "agent_id": agent_id,
        "agency_id": agency_id,
        "premium": premium,
        "commission_amount": commission_amount,
        "commission_rate": "0.125" if commission_amount else None,
        "status": status,
        "product_name": "Term Life",
        "carrier": "Acme Mutual",
        "policy_number": f"POL-{sale_id}",
        "sale_date": "2025-03-15T09:30:00+00:00",
    }


def _writes(fake_db, table):
    return [op for name, op in fake_db.calls if name == table and op != "select"]


def test_system_agencies_are_ensured(fake_db):
    report = run_reconciliation_sweep(now=NOW)

    ids = {row["id"] for row in fake_db.rows("agencies")}
    assert SYSTEM_AGENCY_ID in ids
    assert FALLBACK_AGENCY_ID in ids
    assert report.success
    assert "Valid agencies ensured" in report.fixes_applied


def test_orphaned_users_move_to_fallback_agency(fake_db):
    fake_db.seed("agencies", {"id": AGENCY_X, "agency_name": "X", "is_active": True})
    fake_db.seed(
        "portal_users",
        {"id": "orphan", "email": "o@example.com", "agency_id": DELETED_AGENCY},
        {"id": "member", "email": "m@example.com", "agency_id": AGENCY_X},
        {"id": "unaffiliated", "email": "u@example.com", "agency_id": None},
    )

    report = run_reconciliation_sweep(now=NOW)

    users = {row["id"]: row["agency_id"] for row in fake_db.rows("portal_users")}
    assert users == {"orphan": FALLBACK_AGENCY_ID, "member": AGENCY_X, "unaffiliated": None}
    assert any("Fixed 1 orphaned users" in fix for fix in report.fixes_applied)


def test_sale_agency_is_backfilled_from_agent_once(fake_db):
    """Running twice: the second run finds nothing to change."""

    fake_db.seed("agencies", {"id": AGENCY_X, "agency_name": "X", "is_active": True})
    fake_db.seed("portal_users", {"id": "agent-1", "email": "a@example.com", "agency_id": AGENCY_X})
    fake_db.seed("portal_sales", _sale("s1", "agent-1"), _sale("s2", "ghost-agent"))

    first = run_reconciliation_sweep(now=NOW)

    sales = {row["id"]: row["agency_id"] for row in fake_db.rows("portal_sales")}
    assert sales == {"s1": AGENCY_X, "s2": None}
    assert "Fixed 1 orphaned sales" in first.fixes_applied
    assert any("1 orphaned sales left unresolved" in fix for fix in first.fixes_applied)

    fake_db.calls.clear()
    second = run_reconciliation_sweep(now=NOW + timedelta(hours=1))

    assert _writes(fake_db, "portal_sales") == []
    assert _writes(fake_db, "portal_users") == []
    assert _writes(fake_db, "commissions") == []
    assert "Fixed 0 orphaned sales" in second.fixes_applied
    assert second.success


def test_missing_commission_is_created_once(fake_db):
    fake_db.seed(
        "portal_sales",
        _sale("s1", "agent-1", AGENCY_X, commission_amount=150, premium=1200),
        _sale("s2", "agent-1", AGENCY_X, commission_amount=0, premium=500),
        _sale("s3", "agent-1", AGENCY_X, commission_amount=80, premium=640, status="cancelled"),
    )
    fake_db.seed("commissions", {"id": "c3", "sale_id": "s3"})

    report = run_reconciliation_sweep(now=NOW)

    commissions = fake_db.rows("commissions")
    assert len(commissions) == 2
    created = next(row for row in commissions if row["sale_id"] == "s1")
    assert Decimal(created["base_amount"]) == Decimal("1200")
    assert Decimal(created["commission_amount"]) == Decimal("150")
    assert created["payment_status"] == "pending"
    assert created["commission_type"] == "initial"
    assert created["payment_period"] == "2025-03"
    assert "Created 1 commission records ($150.00 total)" in report.fixes_applied

    again = run_reconciliation_sweep(now=NOW + timedelta(hours=1))

    assert len(fake_db.rows("commissions")) == 2
    assert "All sales already have commission records" in again.fixes_applied


def test_failed_step_does_not_stop_later_steps(fake_db):
    fake_db.seed("portal_sales", _sale("s1", "agent-1", AGENCY_X, commission_amount=150, premium=1200))

    with patch(
        "services.reconciliation_service.list_sales_without_agency",
        side_effect=RuntimeError("statement timeout"),
    ):
        report = run_reconciliation_sweep(now=NOW)

    assert not report.success
    assert report.errors == ["Sales fix error: statement timeout"]
    assert len(fake_db.rows("commissions")) == 1
    assert len(fake_db.rows("audit_logs")) == 1


def test_run_is_audited(fake_db):
    report = run_reconciliation_sweep(triggered_by="nightly-cron", now=NOW)

    entry = fake_db.rows("audit_logs")[0]
    assert entry["action"] == "DATABASE_RECONCILIATION"
    assert entry["resource_type"] == "database"
    assert entry["agency_id"] == SYSTEM_AGENCY_ID
    assert entry["metadata"]["triggered_by"] == "nightly-cron"
    assert entry["metadata"]["fixes_applied"] == report.fixes_applied
    assert entry["details"] == f"Applied {len(report.fixes_applied)} fixes, 0 errors"


def test_commissions_past_the_row_cap_are_not_recreated(fake_db):
    fake_db.seed(
        "portal_sales",
        *[_sale(f"s{i:04d}", "agent-1", AGENCY_X, commission_amount=10, premium=100) for i in range(1001)],
    )
    fake_db.seed("commissions", *[{"id": f"c{i:04d}", "sale_id": f"s{i:04d}"} for i in range(1001)])
    fake_db.seed("portal_sales", _sale("s2000", "agent-1", AGENCY_X, commission_amount=150, premium=1200))

    report = run_reconciliation_sweep(now=NOW)

    assert report.errors == []
    assert len(fake_db.rows("commissions")) == 1002
    assert [row["sale_id"] for row in fake_db.rows("commissions")][-1] == "s2000"
    assert "Created 1 commission records ($150.00 total)" in report.fixes_applied


def test_users_in_agencies_past_the_row_cap_stay_put(fake_db):
    fake_db.seed(
        "agencies",
        *[{"id": f"a{i:04d}", "agency_name": f"Agency {i}", "is_active": True} for i in range(1001)],
    )
    fake_db.seed(
        "portal_users",
        {"id": "late-member", "email": "l@example.com", "agency_id": "a1000"},
        {"id": "orphan", "email": "o@example.com", "agency_id": DELETED_AGENCY},
    )

    report = run_reconciliation_sweep(now=NOW)

    users = {row["id"]: row["agency_id"] for row in fake_db.rows("portal_users")}
    assert users == {"late-member": "a1000", "orphan": FALLBACK_AGENCY_ID}
    assert report.errors == []


def test_orphaned_sales_past_the_row_cap_are_all_backfilled(fake_db):
    fake_db.seed("agencies", {"id": AGENCY_X, "agency_name": "X", "is_active": True})
    fake_db.seed("portal_users", {"id": "agent-1", "email": "a@example.com", "agency_id": AGENCY_X})
    fake_db.seed("portal_sales", *[_sale(f"s{i:04d}", "agent-1") for i in range(1201)])

    report = run_reconciliation_sweep(now=NOW)

    assert report.errors == []
    assert all(row["agency_id"] == AGENCY_X for row in fake_db.rows("portal_sales"))
    assert "Fixed 1201 orphaned sales" in report.fixes_applied
