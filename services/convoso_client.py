"""
Dialer (Convoso) lead insert client.

Sends one form-encoded lead insert with bounded retry:
- each attempt is bounded by a hard deadline (default 10s), covering the
  whole request and not only individual socket reads
- up to `max_attempts` attempts (default 2), linear backoff `attempt * 1s`
- a duplicate-lead rejection is raised immediately and never retried
- after the last attempt the last error propagates

Errors carry the HTTP status the API boundary answers with and whether the
failure was worth retrying.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import requests

from services.config import get_settings

logger = logging.getLogger(__name__)

BACKOFF_SECONDS = 1.0
TIMEOUT_MESSAGE = "Convoso API timeout - please try again"

# Worker threads for in-flight dialer requests; see _attempt
_EXECUTOR = ThreadPoolExecutor(max_workers=8, thread_name_prefix="convoso-insert")


class ConvosoError(Exception):
    """Base class for dialer delivery failures."""

    status_code = 500
    retryable = True

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ConvosoTimeoutError(ConvosoError):
    status_code = 504


class ConvosoConnectionError(ConvosoError):
    status_code = 502


class ConvosoDuplicateError(ConvosoError):
    status_code = 409
    retryable = False


class ConvosoAPIError(ConvosoError):
    """HTTP error status, or a well-formed response reporting failure."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None, retryable: bool = True) -> None:
        super().__init__(message, details)
        self.retryable = retryable


@dataclass(frozen=True, slots=True)
class ConvosoInsertResult:
    lead_id: str
    message: Optional[str]
    data: Mapping[str, Any]


def _is_duplicate(text: Optional[str]) -> bool:
    return bool(text) and "duplicate" in str(text).lower()


def _form_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def _parse_response(response: requests.Response) -> ConvosoInsertResult:
    body_text = response.text or ""

    if not response.ok:
        if _is_duplicate(body_text):
            raise ConvosoDuplicateError("Duplicate lead - lead already exists in this list", body_text[:500])
        raise ConvosoAPIError(f"HTTP {response.status_code}: {response.reason}", body_text[:500])

    try:
        body = response.json()
    except ValueError as exc:
        raise ConvosoAPIError("Dialer returned a non-JSON response", body_text[:500]) from exc

    if not isinstance(body, Mapping):
        raise ConvosoAPIError("Dialer returned an unexpected response", body_text[:500], retryable=False)

    message = body.get("message") or body.get("text") or body.get("error")
    if not body.get("success"):
        if _is_duplicate(message):
            raise ConvosoDuplicateError("Duplicate lead - lead already exists in this list", str(message))
        raise ConvosoAPIError(str(message or "Convoso API error"), retryable=False)

    data = body.get("data") or {}
    lead_id = data.get("lead_id") if isinstance(data, Mapping) else None
    if lead_id is None:
        raise ConvosoAPIError("Dialer response is missing data.lead_id", retryable=False)

    return ConvosoInsertResult(lead_id=str(lead_id), message=message, data=dict(data))


def _post(url: str, form: Mapping[str, Any], timeout: float) -> ConvosoInsertResult:
    try:
        response = requests.post(url, data=form, timeout=timeout)
    except requests.exceptions.Timeout as exc:
        raise ConvosoTimeoutError(TIMEOUT_MESSAGE, str(exc)) from exc
    except requests.exceptions.RequestException as exc:
        raise ConvosoConnectionError("Unable to connect to Convoso API", str(exc)) from exc
    return _parse_response(response)


def _attempt(url: str, form: Mapping[str, Any], timeout: float) -> ConvosoInsertResult:
    """
    One insert attempt with a hard deadline.

    `requests` only bounds each socket read, so a dialer trickling its
    response could hold an attempt open indefinitely. The request runs on a
    worker thread; once the deadline passes the attempt is abandoned and
    reported as a timeout. The abandoned worker ends at its next socket
    timeout.
    """

    future = _EXECUTOR.submit(_post, url, form, timeout)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        future.cancel()
        raise ConvosoTimeoutError(
            TIMEOUT_MESSAGE, f"no complete response within {timeout:g}s"
        ) from exc


def send_lead(
    payload: Mapping[str, Any],
    *,
    url: Optional[str] = None,
    timeout: Optional[float] = None,
    max_attempts: Optional[int] = None,
) -> ConvosoInsertResult:
    """
    Insert a lead into the dialer.

    Args:
        payload: form fields, including auth_token and list_id
        url: insert endpoint (default from settings)
        timeout: per-attempt timeout in seconds (default from settings)
        max_attempts: total attempts (default from settings)

    Raises:
        ConvosoDuplicateError: dialer rejected the lead as a duplicate
        ConvosoTimeoutError / ConvosoConnectionError / ConvosoAPIError:
            the last failure once attempts are exhausted
    """

    settings = get_settings()
    url = url or settings.convoso_api_url
    timeout = timeout if timeout is not None else settings.convoso_timeout_seconds
    attempts = max_attempts if max_attempts is not None else settings.convoso_max_attempts
    if attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    form = {key: _form_value(value) for key, value in payload.items() if value is not None}

    for attempt in range(1, attempts + 1):
        try:
            return _attempt(url, form, timeout)
        except ConvosoError as exc:
            logger.warning("Convoso API attempt %d/%d failed: %s", attempt, attempts, exc.message)
            if not exc.retryable or attempt == attempts:
                raise
        time.sleep(attempt * BACKOFF_SECONDS)


__all__ = [
    "ConvosoError",
    "ConvosoTimeoutError",
    "ConvosoConnectionError",
    "ConvosoDuplicateError",
    "ConvosoAPIError",
    "ConvosoInsertResult",
    "send_lead",
]
