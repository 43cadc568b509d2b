"""
Reconciliation sweep.

Restores the cross-table invariants that concurrent writes can break:

1. The fixed system agencies exist (upsert by primary key).
2. Every user's agency_id references a system or active agency; orphans are
   moved to the fallback agency, never deleted.
3. Every sale has an agency_id, backfilled from its agent's agency.
4. Every sale with commission_amount > 0 has exactly one commission record.
5. The run itself is recorded in the audit log.

Each step is wrapped on its own: a failing step adds to `errors` and the
following steps still run. Steps run in order, so a later step sees the
effects of an earlier one.

Safe to run repeatedly and alongside live traffic. Not designed for two
concurrent sweeps.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from domain.reconciliation import ReconciliationReport
from domain.sale import Commission
from domain.time import require_utc_timestamp, utc_now
from repositories.agency_repository import list_active_agency_ids, upsert_agencies
from repositories.audit_repository import insert_audit_log
from repositories.commission_repository import insert_commissions, list_commissioned_sale_ids
from repositories.sale_repository import (
    assign_agency_to_sales,
    list_commissionable_sales,
    list_sales_without_agency,
)
from repositories.user_repository import (
    get_agency_ids_for_users,
    list_users_outside_agencies,
    reassign_users_to_agency,
)

logger = logging.getLogger(__name__)

SYSTEM_AGENCY_ID = "a1111111-1111-1111-1111-111111111111"
FALLBACK_AGENCY_ID = "a2222222-2222-2222-2222-222222222222"
PRIMARY_AGENCY_ID = "a3333333-3333-3333-3333-333333333333"

SYSTEM_AGENCIES: tuple[dict[str, object], ...] = (
    {"id": SYSTEM_AGENCY_ID, "agency_id": "SYSTEM", "agency_name": "System", "is_active": True},
    {"id": FALLBACK_AGENCY_ID, "agency_id": "DEFAULT001", "agency_name": "Default Agency", "is_active": True},
    {"id": PRIMARY_AGENCY_ID, "agency_id": "PRIMARY001", "agency_name": "Primary Agency", "is_active": True},
)

AUDIT_ACTION = "DATABASE_RECONCILIATION"


def _ensure_system_agencies(report: ReconciliationReport) -> None:
    upsert_agencies(SYSTEM_AGENCIES)
    report.fixes_applied.append("Valid agencies ensured")


def _reassign_orphaned_users(report: ReconciliationReport, now: datetime) -> None:
    valid_ids = {str(row["id"]) for row in SYSTEM_AGENCIES}
    valid_ids.update(list_active_agency_ids())

    orphans = list_users_outside_agencies(valid_ids)
    if not orphans:
        report.fixes_applied.append("No orphaned users found")
        return

    logger.info("Found %d orphaned users to fix", len(orphans))
    updated = reassign_users_to_agency([row["id"] for row in orphans], FALLBACK_AGENCY_ID, now)
    report.fixes_applied.append(
        f"Fixed {updated} orphaned users (reassigned to fallback agency {FALLBACK_AGENCY_ID})"
    )


def _backfill_sale_agencies(report: ReconciliationReport, now: datetime) -> None:
    sales = list_sales_without_agency()
    if not sales:
        report.fixes_applied.append("No orphaned sales found")
        return

    logger.info("Found %d orphaned sales to fix", len(sales))
    agent_agencies = get_agency_ids_for_users(
        sale.agent_id for sale in sales if sale.agent_id is not None
    )

    by_agency: Dict[str, List[str]] = defaultdict(list)
    unresolved = 0
    for sale in sales:
        agency_id = agent_agencies.get(sale.agent_id) if sale.agent_id else None
        if agency_id is None:
            unresolved += 1
            continue
        by_agency[agency_id].append(sale.sale_id)

    fixed = 0
    for agency_id, sale_ids in sorted(by_agency.items()):
        try:
            fixed += assign_agency_to_sales(sale_ids, agency_id, now)
        except Exception as exc:
            logger.exception("Failed to backfill %d sales for agency %s", len(sale_ids), agency_id)
            report.errors.append(f"Sales fix error for agency {agency_id}: {exc}")

    report.fixes_applied.append(f"Fixed {fixed} orphaned sales")
    if unresolved:
        report.fixes_applied.append(
            f"{unresolved} orphaned sales left unresolved (agent has no agency)"
        )


def _create_missing_commissions(report: ReconciliationReport) -> None:
    sales = list_commissionable_sales()
    existing = list_commissioned_sale_ids()

    missing = [
        Commission.from_sale(sale)
        for sale in sales
        if sale.is_commissionable and sale.sale_id not in existing
    ]
    if not missing:
        report.fixes_applied.append("All sales already have commission records")
        return

    logger.info("Creating %d missing commission records", len(missing))
    insert_commissions(missing)

    total = sum((c.commission_amount or Decimal("0") for c in missing), Decimal("0"))
    report.fixes_applied.append(
        f"Created {len(missing)} commission records (${total.quantize(Decimal('0.01'))} total)"
    )


def _record_audit(report: ReconciliationReport) -> None:
    insert_audit_log(
        action=AUDIT_ACTION,
        resource_type="database",
        details=(
            f"Applied {len(report.fixes_applied)} fixes, {len(report.errors)} errors"
        ),
        metadata=report.to_dict(),
        occurred_at=report.timestamp,
        agency_id=SYSTEM_AGENCY_ID,
    )


def run_reconciliation_sweep(
    *,
    triggered_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ReconciliationReport:
    """
    Run all repair steps once and report what was fixed and what failed.

    Args:
        triggered_by: who or what started the run (recorded in the audit log)
        now: run timestamp (UTC); defaults to now

    Returns:
        ReconciliationReport; `success` is True only if no step errored
    """

    started_at = now or utc_now()
    require_utc_timestamp("now", started_at)
    report = ReconciliationReport(timestamp=started_at, triggered_by=triggered_by)

    logger.info("Reconciliation sweep started (triggered by %s)", triggered_by or "unknown")

    try:
        _ensure_system_agencies(report)
    except Exception as exc:
        logger.exception("Agency fix error")
        report.errors.append(f"Agency fix error: {exc}")

    try:
        _reassign_orphaned_users(report, started_at)
    except Exception as exc:
        logger.exception("User fix error")
        report.errors.append(f"User fix error: {exc}")

    try:
        _backfill_sale_agencies(report, started_at)
    except Exception as exc:
        logger.exception("Sales fix error")
        report.errors.append(f"Sales fix error: {exc}")

    try:
        _create_missing_commissions(report)
    except Exception as exc:
        logger.exception("Commission creation error")
        report.errors.append(f"Commission creation error: {exc}")

    try:
        _record_audit(report)
    except Exception as exc:
        logger.exception("Audit log error")
        report.errors.append(f"Audit log error: {exc}")

    logger.info(
        "Reconciliation sweep completed: %d fixes applied, %d errors",
        len(report.fixes_applied),
        len(report.errors),
    )
    return report


__all__ = [
    "SYSTEM_AGENCY_ID",
    "FALLBACK_AGENCY_ID",
    "PRIMARY_AGENCY_ID",
    "SYSTEM_AGENCIES",
    "run_reconciliation_sweep",
]
