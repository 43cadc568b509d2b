"""
Lead normalization.

Maps heterogeneous dialer webhook payloads onto the canonical Lead shape.

Behavior:
- Each canonical field is filled from the first non-empty alias in its list.
- Numeric fields are coerced without raising; bad input yields the default.
- Phone numbers are reduced to digits and kept only when 10 or 11 digits long.
- Every key not consumed by an alias list is copied verbatim into
  `additional_data`.

No side effects. The only failure mode is a lead with missing identifiers,
which the caller rejects.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from domain.lead import DEFAULT_LEAD_SCORE, CanonicalLead, LeadPriority
from domain.time import require_utc_timestamp, utc_now

# Ordered alias lists; the first alias carrying a non-empty value wins.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "lead_id": ("lead_id", "id", "leadId"),
    "external_id": ("external_id", "externalId", "reference_id"),
    "phone_number": ("phone_number", "phone", "phoneNumber"),
    "email": ("email", "email_address"),
    "first_name": ("first_name", "firstName", "fname"),
    "last_name": ("last_name", "lastName", "lname"),
    "address": ("address", "address_line1", "address1", "street"),
    "city": ("city", "address_city"),
    "state": ("state", "address_state", "province"),
    "zip_code": ("zip_code", "zipCode", "postal_code", "zip"),
    "age": ("age",),
    "gender": ("gender",),
    "source": ("source", "lead_source"),
    "campaign_id": ("campaign_id", "campaignId"),
    "campaign_name": ("campaign_name", "campaignName"),
    "cost": ("cost", "lead_cost", "price"),
    "insurance_type": ("insurance_type", "insuranceType", "product_type"),
    "coverage_type": ("coverage_type", "coverageType"),
    "current_carrier": ("current_carrier", "currentCarrier", "current_insurer"),
    "policy_expires": ("policy_expires", "policyExpires", "expiration_date"),
    "priority": ("priority",),
    "lead_score": ("lead_score", "score", "quality_score"),
    "notes": ("notes", "comments", "description"),
}

_MAPPED_KEYS = frozenset(alias for aliases in FIELD_ALIASES.values() for alias in aliases)

# Webhook events may wrap the lead in an envelope.
_ENVELOPE_KEYS = ("lead", "data")

_NON_DIGITS = re.compile(r"\D")

HIGH_PRIORITY_SCORE = 80


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _first(raw: Mapping[str, Any], aliases: Sequence[str]) -> Any:
    for alias in aliases:
        value = raw.get(alias)
        if not _is_empty(value):
            return value
    return None


def _text(raw: Mapping[str, Any], field_name: str) -> Optional[str]:
    value = _first(raw, FIELD_ALIASES[field_name])
    if value is None:
        return None
    return str(value).strip()


def safe_float(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(str(value).strip())
    except (TypeError, ValueError):
        return default
    if result != result or result in (float("inf"), float("-inf")):
        return default
    return result


def safe_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """
    Parse an integer leniently.

    Accepts "42", 42, 42.9 and "42.9" (truncated); anything else yields default.
    """

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        pass
    parsed = safe_float(value, default=float("nan"))
    if parsed != parsed:
        return default
    return int(parsed)


def normalize_phone(value: Any) -> Optional[str]:
    """Digits only; None unless the result is 10 or 11 digits."""

    if value is None:
        return None
    digits = _NON_DIGITS.sub("", str(value))
    if 10 <= len(digits) <= 11:
        return digits
    return None


def mask_phone(phone_number: Optional[str]) -> str:
    """Last four digits only, for logs."""

    if not phone_number:
        return "<none>"
    return f"***{phone_number[-4:]}"


def _priority(raw_priority: Any, lead_score: int) -> LeadPriority:
    if raw_priority is not None:
        try:
            return LeadPriority(str(raw_priority).strip().lower())
        except ValueError:
            pass
    return LeadPriority.HIGH if lead_score > HIGH_PRIORITY_SCORE else LeadPriority.NORMAL


def unwrap_envelope(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    for key in _ENVELOPE_KEYS:
        inner = payload.get(key)
        if isinstance(inner, Mapping):
            return inner
    return payload


def normalize_lead(
    payload: Mapping[str, Any],
    *,
    received_at: Optional[datetime] = None,
) -> CanonicalLead:
    """
    Build a CanonicalLead from a raw webhook payload.

    Args:
        payload: Arbitrary key/value mapping from the dialer
        received_at: Ingestion timestamp (UTC); defaults to now

    Returns:
        CanonicalLead with unmodelled fields preserved in additional_data
    """

    if received_at is None:
        received_at = utc_now()
    require_utc_timestamp("received_at", received_at)

    raw = unwrap_envelope(payload)

    lead_id = _text(raw, "lead_id")
    lead_score = safe_int(_first(raw, FIELD_ALIASES["lead_score"]), DEFAULT_LEAD_SCORE)

    additional_data = {key: value for key, value in raw.items() if key not in _MAPPED_KEYS}

    return CanonicalLead(
        lead_id=lead_id or None,
        external_id=_text(raw, "external_id"),
        phone_number=normalize_phone(_first(raw, FIELD_ALIASES["phone_number"])),
        first_name=_text(raw, "first_name"),
        last_name=_text(raw, "last_name"),
        email=_text(raw, "email"),
        address=_text(raw, "address"),
        city=_text(raw, "city"),
        state=_text(raw, "state"),
        zip_code=_text(raw, "zip_code"),
        age=safe_int(_first(raw, FIELD_ALIASES["age"])),
        gender=_text(raw, "gender"),
        source=_text(raw, "source") or "convoso",
        campaign_id=_text(raw, "campaign_id"),
        campaign_name=_text(raw, "campaign_name"),
        cost=safe_float(_first(raw, FIELD_ALIASES["cost"])),
        insurance_type=_text(raw, "insurance_type") or "auto",
        coverage_type=_text(raw, "coverage_type"),
        current_carrier=_text(raw, "current_carrier"),
        policy_expires=_text(raw, "policy_expires"),
        priority=_priority(_first(raw, FIELD_ALIASES["priority"]), lead_score),
        lead_score=lead_score,
        notes=_text(raw, "notes"),
        additional_data=additional_data,
        received_at=received_at,
        created_at=received_at,
        updated_at=received_at,
    )


__all__ = [
    "FIELD_ALIASES",
    "mask_phone",
    "normalize_lead",
    "normalize_phone",
    "safe_float",
    "safe_int",
]
