"""
Domain: agency dialer integration.

An agency (tenant) carries its dialer credentials and the catalog of dialer
lists a pushed lead may land in. Leads pushed to the dialer are mirrored
locally as tracking records.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple
from uuid import UUID

ACTIVE_LIST_STATUS = "Active"


def is_valid_uuid(value: Any) -> bool:
    """True for a canonical 8-4-4-4-12 hex UUID string."""

    if not isinstance(value, str) or len(value) != 36:
        return False
    try:
        UUID(value)
    except ValueError:
        return False
    return True


@dataclass(frozen=True, slots=True)
class DialerList:
    """A named destination bucket inside the dialer."""

    id: str
    name: str = ""
    status: Optional[str] = None
    campaign_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_LIST_STATUS

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DialerList":
        campaign = data.get("campaign_id")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            status=data.get("status"),
            campaign_id=str(campaign) if campaign is not None else None,
        )


@dataclass(frozen=True, slots=True)
class AgencyIntegration:
    """
    Dialer credentials plus list catalog for one agency.

    `lists` is an ordered, read-only snapshot; list selection never reloads it.
    """

    agency_id: str
    name: str
    is_active: bool
    convoso_auth_token: Optional[str]
    lists: Tuple[DialerList, ...] = ()


@dataclass(frozen=True, slots=True)
class TrackingRecord:
    """Local mirror of a lead pushed to the dialer, keyed by (agency_id, convoso_lead_id)."""

    agency_id: str
    convoso_lead_id: str
    list_id: str
    campaign_id: Optional[str] = None
    internal_lead_id: Optional[str] = None
    status: str = "NEW"
