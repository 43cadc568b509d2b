"""
Dialer list selection.

Pure decision function over an injected, read-only list catalog. Rules are
evaluated in order and the first match wins:

1. transfer / warm-call lead -> list named like "call", "transfer" or "warm"
2. lead names a carrier      -> list whose name contains the carrier
3. lead has a state          -> list whose name contains the state
                                (postal code as a word, or the full name)
4. active list named like "data"
5. any active list
6. the first list in the catalog

Returns None only for an empty catalog.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Sequence

from domain.agency import DialerList

TRANSFER_KEYWORDS = ("call", "transfer", "warm")
DATA_KEYWORD = "data"

US_STATE_NAMES: dict[str, str] = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
    "DC": "District of Columbia", "FL": "Florida", "GA": "Georgia", "HI": "Hawaii",
    "ID": "Idaho", "IL": "Illinois", "IN": "Indiana", "IA": "Iowa",
    "KS": "Kansas", "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine",
    "MD": "Maryland", "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota",
    "MS": "Mississippi", "MO": "Missouri", "MT": "Montana", "NE": "Nebraska",
    "NV": "Nevada", "NH": "New Hampshire", "NJ": "New Jersey", "NM": "New Mexico",
    "NY": "New York", "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio",
    "OK": "Oklahoma", "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island",
    "SC": "South Carolina", "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas",
    "UT": "Utah", "VT": "Vermont", "VA": "Virginia", "WA": "Washington",
    "WV": "West Virginia", "WI": "Wisconsin", "WY": "Wyoming",
}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _first_named(lists: Sequence[DialerList], predicate) -> Optional[str]:
    for item in lists:
        if item.name and predicate(item.name.lower(), item):
            return item.id
    return None


def _is_transfer(lead_data: Mapping[str, Any]) -> bool:
    flag = lead_data.get("is_transfer")
    if isinstance(flag, str):
        flag = flag.strip().lower() in ("1", "true", "yes")
    return bool(flag) or _text(lead_data.get("source")).lower() == "transfer"


def _state_matcher(state: str):
    """Build a name predicate for a state given as postal code or full name."""

    code = state.upper()
    full_name = US_STATE_NAMES.get(code, state).lower()
    code_pattern = re.compile(rf"\b{re.escape(state.lower())}\b")

    def matches(name: str, _item: DialerList) -> bool:
        if len(state) == 2 and code_pattern.search(name):
            return True
        return full_name in name

    return matches


def select_best_list(
    lead_data: Mapping[str, Any],
    lists: Sequence[DialerList],
) -> Optional[str]:
    """
    Choose the dialer list a lead is pushed into.

    Args:
        lead_data: raw lead fields from the push request
        lists: the agency's list catalog, in catalog order

    Returns:
        list id, or None if the catalog is empty
    """

    if not lists:
        return None

    if _is_transfer(lead_data):
        found = _first_named(
            lists, lambda name, _item: any(word in name for word in TRANSFER_KEYWORDS)
        )
        if found is not None:
            return found

    carrier = _text(lead_data.get("carrier") or lead_data.get("currentCarrier")).lower()
    if carrier:
        found = _first_named(lists, lambda name, _item: carrier in name)
        if found is not None:
            return found

    state = _text(lead_data.get("state"))
    if state:
        found = _first_named(lists, _state_matcher(state))
        if found is not None:
            return found

    found = _first_named(lists, lambda name, item: DATA_KEYWORD in name and item.is_active)
    if found is not None:
        return found

    for item in lists:
        if item.is_active:
            return item.id

    return lists[0].id


def find_list(list_id: Optional[str], lists: Sequence[DialerList]) -> Optional[DialerList]:
    for item in lists:
        if item.id == list_id:
            return item
    return None


def campaign_for_list(list_id: Optional[str], lists: Sequence[DialerList]) -> Optional[str]:
    """Campaign id of the given list, or None if unknown."""

    found = find_list(list_id, lists)
    return found.campaign_id if found else None


__all__ = [
    "US_STATE_NAMES",
    "select_best_list",
    "find_list",
    "campaign_for_list",
]
