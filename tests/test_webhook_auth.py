"""
Tests for `services/webhook_auth.py`.
"""

from __future__ import annotations

import pytest

from services.errors import WebhookAuthError
from services.webhook_auth import (
    AuthMode,
    WebhookAuthConfig,
    compute_signature,
    verify_webhook_request,
)

BODY = b'{"lead_id": "L1", "phone": "5550102030"}'


def test_open_mode_accepts_anything() -> None:
    config = WebhookAuthConfig()

    assert config.mode is AuthMode.OPEN
    assert verify_webhook_request(config, {}, BODY) is AuthMode.OPEN


def test_api_key_header_is_accepted() -> None:
    config = WebhookAuthConfig(api_key="shared-key")

    assert verify_webhook_request(config, {"X-Convoso-Api-Key": "shared-key"}, BODY) is AuthMode.VERIFIED
    assert verify_webhook_request(config, {"Authorization": "Bearer shared-key"}, BODY) is AuthMode.VERIFIED


@pytest.mark.parametrize("headers", [{}, {"X-Convoso-Api-Key": "wrong"}, {"Authorization": "Bearer nope"}])
def test_wrong_or_missing_api_key_is_rejected(headers) -> None:
    config = WebhookAuthConfig(api_key="shared-key")

    with pytest.raises(WebhookAuthError) as excinfo:
        verify_webhook_request(config, headers, BODY)

    assert excinfo.value.status_code == 401


def test_valid_signature_is_accepted() -> None:
    config = WebhookAuthConfig(signing_secret="s3cret")
    headers = {"X-Convoso-Signature": compute_signature("s3cret", BODY)}

    assert verify_webhook_request(config, headers, BODY) is AuthMode.VERIFIED


def test_signature_covers_the_raw_body() -> None:
    config = WebhookAuthConfig(signing_secret="s3cret")
    headers = {"X-Webhook-Signature": compute_signature("s3cret", BODY)}

    with pytest.raises(WebhookAuthError, match="invalid signature"):
        verify_webhook_request(config, headers, BODY + b" ")


def test_missing_signature_is_rejected_when_secret_configured() -> None:
    config = WebhookAuthConfig(signing_secret="s3cret")

    with pytest.raises(WebhookAuthError, match="missing signature"):
        verify_webhook_request(config, {}, BODY)


def test_both_checks_apply_when_both_configured() -> None:
    config = WebhookAuthConfig(api_key="shared-key", signing_secret="s3cret")
    signature = compute_signature("s3cret", BODY)

    with pytest.raises(WebhookAuthError, match="invalid API key"):
        verify_webhook_request(config, {"X-Convoso-Signature": signature}, BODY)

    headers = {"X-Convoso-Signature": signature, "X-Convoso-Api-Key": "shared-key"}
    assert verify_webhook_request(config, headers, BODY) is AuthMode.VERIFIED
