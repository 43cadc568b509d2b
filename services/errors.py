"""
Service-level error taxonomy.

Each error carries the HTTP status the API boundary maps it to. Persistence
failures are not wrapped here: repositories raise RuntimeError (or let the
Supabase APIError propagate) and the routers answer 500.
"""

from __future__ import annotations


class LeadDeskError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class LeadValidationError(LeadDeskError):
    """Malformed or missing caller input. Never retried."""

    status_code = 400


class NotFoundError(LeadDeskError):
    """Referenced agency or integration does not exist or is inactive."""

    status_code = 404


class WebhookAuthError(LeadDeskError):
    """Inbound webhook failed shared-secret or signature verification."""

    status_code = 401


class AdminAuthError(LeadDeskError):
    """Administrative token missing or wrong."""

    status_code = 403


__all__ = [
    "LeadDeskError",
    "LeadValidationError",
    "NotFoundError",
    "WebhookAuthError",
    "AdminAuthError",
]
