"""
Commission repository (persistence).

`commissions.sale_id` is unique: one commission record per sale.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Optional, Set

from domain.sale import Commission
from repositories import client as db
from repositories.paging import fetch_all

_COMMISSIONS_TABLE: str = "commissions"


def _money(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _commission_to_row(commission: Commission) -> dict[str, Any]:
    return {
        "sale_id": commission.sale_id,
        "agent_id": commission.agent_id,
        "agency_id": commission.agency_id,
        "commission_rate": _money(commission.commission_rate),
        "commission_amount": _money(commission.commission_amount),
        "base_amount": _money(commission.base_amount),
        "commission_type": commission.commission_type,
        "payment_status": commission.payment_status,
        "product_name": commission.product_name,
        "carrier": commission.carrier,
        "policy_number": commission.policy_number,
        "payment_period": commission.payment_period,
    }


def list_commissioned_sale_ids() -> Set[str]:
    """Return the sale_id of every existing commission record."""

    rows = fetch_all(
        lambda: db.get_client().table(_COMMISSIONS_TABLE).select("sale_id").order("sale_id"),
        "list commissions",
    )
    return {str(row["sale_id"]) for row in rows if row.get("sale_id") is not None}


def insert_commissions(commissions: List[Commission]) -> None:
    """
    Bulk insert commission records in a single request.

    Empty list is a no-op.
    """

    if not commissions:
        return

    payloads = [_commission_to_row(commission) for commission in commissions]
    response = db.get_client().table(_COMMISSIONS_TABLE).insert(payloads).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to create {len(commissions)} commissions: {error}")


__all__ = ["list_commissioned_sale_ids", "insert_commissions"]
