"""
Sale repository (persistence).

This module provides *only* persistence operations for portal sales. It does
not decide which sales need repair; it lists and updates them for the
reconciliation service.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Mapping

from domain.sale import PortalSale, to_decimal
from domain.time import parse_utc_timestamp, to_iso_utc
from repositories import client as db
from repositories.paging import chunked, fetch_all

# Supabase table name for sale records.
# Keep this aligned with your database schema.
_SALES_TABLE: str = "portal_sales"

_SALE_COLUMNS = (
    "id, agent_id, agency_id, premium, commission_amount, commission_rate, "
    "status, product_name, carrier, policy_number, sale_date"
)


def _row_to_sale(row: Mapping[str, Any]) -> PortalSale:
    """Convert a Supabase row into a PortalSale."""

    agent_id = row.get("agent_id")
    agency_id = row.get("agency_id")
    return PortalSale(
        sale_id=str(row["id"]),
        agent_id=str(agent_id) if agent_id is not None else None,
        agency_id=str(agency_id) if agency_id is not None else None,
        premium=to_decimal(row.get("premium")),
        commission_amount=to_decimal(row.get("commission_amount")),
        commission_rate=to_decimal(row.get("commission_rate")),
        status=row.get("status"),
        product_name=row.get("product_name"),
        carrier=row.get("carrier"),
        policy_number=row.get("policy_number"),
        sale_date=parse_utc_timestamp(row.get("sale_date")),
    )


def list_sales_without_agency() -> List[PortalSale]:
    """Retrieve all sales whose agency_id is NULL."""

    rows = fetch_all(
        lambda: db.get_client()
        .table(_SALES_TABLE)
        .select(_SALE_COLUMNS)
        .is_("agency_id", "null")
        .order("id"),
        "find orphaned sales",
    )
    return [_row_to_sale(row) for row in rows]


def assign_agency_to_sales(sale_ids: Iterable[str], agency_id: str, updated_at: datetime) -> int:
    """
    Backfill agency_id on sales that still have none.

    The `agency_id IS NULL` guard keeps a concurrent writer's value intact.

    Returns:
        Number of sales updated
    """

    ids = sorted({str(sale_id) for sale_id in sale_ids})
    updated = 0

    for batch in chunked(ids):
        response = (
            db.get_client()
            .table(_SALES_TABLE)
            .update({"agency_id": agency_id, "updated_at": to_iso_utc(updated_at)})
            .in_("id", list(batch))
            .is_("agency_id", "null")
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to backfill sale agency: {error}")

        updated += len(getattr(response, "data", None) or [])

    return updated


def list_commissionable_sales() -> List[PortalSale]:
    """Retrieve all sales with commission_amount > 0."""

    rows = fetch_all(
        lambda: db.get_client()
        .table(_SALES_TABLE)
        .select(_SALE_COLUMNS)
        .gt("commission_amount", 0)
        .order("id"),
        "check commission status",
    )
    return [_row_to_sale(row) for row in rows]


__all__ = [
    "list_sales_without_agency",
    "assign_agency_to_sales",
    "list_commissionable_sales",
]
