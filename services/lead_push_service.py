"""
Outbound lead push (agency -> dialer).

Order of checks matters: input is validated before any lookup, and the
agency is looked up before anything is sent.

    agency_id UUID -> phone present -> phone 10/11 digits
      -> active agency integration -> list selection -> payload
      -> send with retry -> tracking upsert -> agency last_sync

Tracking and last_sync failures are logged; the lead is already in the
dialer at that point.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from domain.agency import AgencyIntegration, TrackingRecord, is_valid_uuid
from domain.time import utc_now
from repositories.agency_repository import get_active_integration, touch_last_sync
from repositories.tracking_repository import upsert_tracking_record
from services.convoso_client import send_lead
from services.errors import LeadValidationError, NotFoundError
from services.lead_normalizer import mask_phone, normalize_phone, safe_int
from services.list_selection import campaign_for_list, find_list, select_best_list

logger = logging.getLogger(__name__)

MAX_FIELD_LENGTH = 255
DEFAULT_HOPPER_PRIORITY = 99
CHECK_DUPLICATES_IN_LIST = 2

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Free-text lead fields copied after trimming: (lead_data key, dialer field)
_TEXT_FIELDS = (
    ("first_name", "first_name"),
    ("last_name", "last_name"),
    ("address", "address1"),
    ("city", "city"),
    ("state", "state"),
    ("current_meds", "current_meds"),
    ("currentCarrier", "with_what_company"),
    ("shoppingReason", "shopping_around"),
)

# Fields passed through unchanged
_PASSTHROUGH_FIELDS = (
    ("dob", "date_of_birth"),
    ("currently_insured", "currently_insured"),
    ("pre_existing", "pre_existing"),
    ("planType", "individual_or_family_plan_1"),
    ("planStartDate", "plan_start_date"),
    ("urgencyDate", "urgency_date"),
)

# Whole-number fields, 0 when unparseable
_INTEGER_FIELDS = (
    ("household_income", "household_income"),
    ("price_range", "price_range"),
    ("currentSpend", "what_are_you_spending_with_that_carrier"),
)


@dataclass(frozen=True, slots=True)
class PushResult:
    convoso_lead_id: str
    list_id: str
    list_name: Optional[str]
    message: str


def sanitize_string(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()[:MAX_FIELD_LENGTH]


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(_EMAIL_RE.match(value))


def build_convoso_payload(
    integration: AgencyIntegration,
    list_id: str,
    phone_number: str,
    lead_data: Mapping[str, Any],
) -> dict[str, Any]:
    """Map push request fields onto the dialer's insert form."""

    payload: dict[str, Any] = {
        "auth_token": integration.convoso_auth_token,
        "list_id": list_id,
        "phone_number": phone_number,
    }

    for source, target in _TEXT_FIELDS:
        if lead_data.get(source):
            payload[target] = sanitize_string(lead_data[source])

    for source, target in _PASSTHROUGH_FIELDS:
        if lead_data.get(source):
            payload[target] = lead_data[source]

    for source, target in _INTEGER_FIELDS:
        if lead_data.get(source):
            payload[target] = safe_int(lead_data[source], 0)

    email = lead_data.get("email")
    if email and is_valid_email(email):
        payload["email"] = email

    if lead_data.get("zip"):
        payload["postal_code"] = str(lead_data["zip"])

    if lead_data.get("medicaidEligible") is not None:
        payload["eligible_for_medicaid"] = lead_data["medicaidEligible"]

    payload.update(
        hopper=True,
        hopper_priority=lead_data.get("priority") or DEFAULT_HOPPER_PRIORITY,
        check_dup=CHECK_DUPLICATES_IN_LIST,
        update_if_found=True,
    )
    return payload


def _track(integration: AgencyIntegration, list_id: str, convoso_lead_id: str,
           lead_data: Mapping[str, Any], now: datetime) -> None:
    internal_id = lead_data.get("id")
    record = TrackingRecord(
        agency_id=integration.agency_id,
        convoso_lead_id=convoso_lead_id,
        list_id=list_id,
        campaign_id=campaign_for_list(list_id, integration.lists),
        internal_lead_id=str(internal_id) if internal_id is not None else None,
    )
    try:
        upsert_tracking_record(record, now)
    except Exception:
        logger.exception("Tracking error (non-fatal) for dialer lead %s", convoso_lead_id)

    try:
        touch_last_sync(integration.agency_id, now)
    except Exception:
        logger.exception("Failed to update last_sync for agency %s", integration.agency_id)


def push_lead(
    agency_id: Any,
    lead_data: Mapping[str, Any],
    *,
    now: Optional[datetime] = None,
) -> PushResult:
    """
    Push one lead into the agency's dialer.

    Raises:
        LeadValidationError: bad agency_id, missing/invalid phone, empty list catalog
        NotFoundError: agency missing or inactive
        ConvosoError subclasses: delivery failed (see services.convoso_client)
    """

    if not is_valid_uuid(agency_id):
        raise LeadValidationError("Invalid agency_id format - must be a valid UUID")

    raw_phone = lead_data.get("phone") or lead_data.get("phone_number")
    if not raw_phone:
        raise LeadValidationError("Missing required fields: agency_id and lead_data.phone")

    phone_number = normalize_phone(raw_phone)
    if phone_number is None:
        raise LeadValidationError("Invalid phone number - must be 10 or 11 digits")

    integration = get_active_integration(agency_id)
    if integration is None:
        raise NotFoundError("Agency not found or inactive")

    list_id = select_best_list(lead_data, integration.lists)
    if list_id is None:
        raise LeadValidationError("No suitable list found for this lead type")

    payload = build_convoso_payload(integration, list_id, phone_number, lead_data)
    logger.info("Inserting lead for agency %s, list %s, phone %s",
                integration.name or integration.agency_id, list_id, mask_phone(phone_number))

    result = send_lead(payload)

    _track(integration, list_id, result.lead_id, lead_data, now or utc_now())

    selected = find_list(list_id, integration.lists)
    return PushResult(
        convoso_lead_id=result.lead_id,
        list_id=list_id,
        list_name=selected.name if selected else None,
        message=result.message or "Lead inserted successfully",
    )


__all__ = ["PushResult", "build_convoso_payload", "push_lead", "sanitize_string"]
