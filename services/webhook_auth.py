"""
Inbound webhook authentication.

Two explicit modes:
- OPEN: neither a shared API key nor a signing secret is configured, and
  every delivery is accepted. The application logs a warning at startup.
- VERIFIED: each configured check must pass.
    * Shared key: `X-Convoso-Api-Key`, or `Authorization` (raw or Bearer).
    * Signature: `X-Convoso-Signature` (or `X-Webhook-Signature`) must equal
      `sha256=<hex HMAC-SHA256 of the raw body>`. A missing signature fails.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from services.config import Settings
from services.errors import WebhookAuthError

API_KEY_HEADERS = ("x-convoso-api-key", "authorization")
SIGNATURE_HEADERS = ("x-convoso-signature", "x-webhook-signature")
SIGNATURE_PREFIX = "sha256="


class AuthMode(str, Enum):
    OPEN = "open"
    VERIFIED = "verified"


@dataclass(frozen=True, slots=True)
class WebhookAuthConfig:
    api_key: Optional[str] = None
    signing_secret: Optional[str] = None

    @property
    def mode(self) -> AuthMode:
        if self.api_key or self.signing_secret:
            return AuthMode.VERIFIED
        return AuthMode.OPEN

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebhookAuthConfig":
        return cls(
            api_key=settings.convoso_api_key,
            signing_secret=settings.convoso_webhook_secret,
        )


def _header(headers: Mapping[str, str], names: tuple[str, ...]) -> Optional[str]:
    lowered = {key.lower(): value for key, value in headers.items()}
    for name in names:
        value = lowered.get(name)
        if value:
            return value.strip()
    return None


def compute_signature(secret: str, raw_body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def _presented_api_key(headers: Mapping[str, str]) -> Optional[str]:
    value = _header(headers, API_KEY_HEADERS)
    if value and value.lower().startswith("bearer "):
        return value[7:].strip()
    return value


def verify_webhook_request(
    config: WebhookAuthConfig,
    headers: Mapping[str, str],
    raw_body: bytes,
) -> AuthMode:
    """
    Check a delivery against the configured secrets.

    Returns:
        The mode the request was accepted under

    Raises:
        WebhookAuthError: a configured check failed
    """

    if config.mode is AuthMode.OPEN:
        return AuthMode.OPEN

    if config.api_key:
        presented = _presented_api_key(headers)
        if not presented or not hmac.compare_digest(
            presented.encode("utf-8"), config.api_key.encode("utf-8")
        ):
            raise WebhookAuthError("Unauthorized: invalid API key")

    if config.signing_secret:
        signature = _header(headers, SIGNATURE_HEADERS)
        if not signature:
            raise WebhookAuthError("Unauthorized: missing signature")
        expected = compute_signature(config.signing_secret, raw_body)
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
            raise WebhookAuthError("Unauthorized: invalid signature")

    return AuthMode.VERIFIED


__all__ = [
    "AuthMode",
    "WebhookAuthConfig",
    "compute_signature",
    "verify_webhook_request",
]
