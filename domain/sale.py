"""
Domain: sales and commissions.

Contract excerpts relevant here:
- Every sale with a positive commission amount has exactly one commission
  record.
- A sale's agency is derived from its agent; the agent is the source of truth.

This module captures the records only. Repair of drifted records lives in the
reconciliation service.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

ACTIVE_SALE_STATUS = "active"
INITIAL_COMMISSION = "initial"


@dataclass(frozen=True, slots=True)
class PortalSale:
    """
    A policy sold by an agent.

    Money fields are Decimals; NULL columns stay None.
    """

    sale_id: str
    agent_id: Optional[str]
    agency_id: Optional[str]
    premium: Optional[Decimal] = None
    commission_amount: Optional[Decimal] = None
    commission_rate: Optional[Decimal] = None
    status: Optional[str] = None
    product_name: Optional[str] = None
    carrier: Optional[str] = None
    policy_number: Optional[str] = None
    sale_date: Optional[datetime] = None

    @property
    def is_commissionable(self) -> bool:
        return self.commission_amount is not None and self.commission_amount > 0


@dataclass(frozen=True, slots=True)
class Commission:
    """Commission record derived from a sale."""

    sale_id: str
    agent_id: Optional[str]
    agency_id: Optional[str]
    commission_amount: Optional[Decimal]
    commission_rate: Optional[Decimal]
    base_amount: Optional[Decimal]
    commission_type: str
    payment_status: str
    product_name: Optional[str] = None
    carrier: Optional[str] = None
    policy_number: Optional[str] = None
    payment_period: Optional[str] = None

    @classmethod
    def from_sale(cls, sale: PortalSale) -> "Commission":
        """
        Build the initial commission for a sale.

        - base_amount is the sale's premium
        - payment is pending for active sales, cancelled otherwise
        - payment_period is the sale month (YYYY-MM)
        """

        return cls(
            sale_id=sale.sale_id,
            agent_id=sale.agent_id,
            agency_id=sale.agency_id,
            commission_amount=sale.commission_amount,
            commission_rate=sale.commission_rate,
            base_amount=sale.premium,
            commission_type=INITIAL_COMMISSION,
            payment_status="pending" if sale.status == ACTIVE_SALE_STATUS else "cancelled",
            product_name=sale.product_name,
            carrier=sale.carrier,
            policy_number=sale.policy_number,
            payment_period=sale.sale_date.strftime("%Y-%m") if sale.sale_date else None,
        )


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a numeric column (number or string) to Decimal; NULL stays None."""

    if value is None or value == "":
        return None
    return Decimal(str(value))
