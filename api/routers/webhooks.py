"""
Webhook API Endpoints.

Inbound lead deliveries from the dialer, either global or scoped to one
agency. Every delivery is recorded in `webhook_logs`.
"""

import json
import logging
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from api.errors import error_response
from api.models import ErrorResponse, WebhookLeadData, WebhookResponse
from domain.time import to_iso_utc, utc_now
from repositories.audit_repository import insert_webhook_log
from services.config import Settings, get_settings
from services.errors import LeadDeskError
from services.lead_ingestion_service import ingest_webhook_lead
from services.webhook_auth import WebhookAuthConfig, verify_webhook_request

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid JSON or missing lead_id / phone"},
    401: {"model": ErrorResponse, "description": "Webhook authentication failed"},
    500: {"model": ErrorResponse, "description": "Unexpected error"},
}


def _log_delivery(
    request_id: str,
    endpoint: str,
    agency_id: Optional[str],
    status_code: int,
    lead_id: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    try:
        insert_webhook_log({
            "request_id": request_id,
            "endpoint": endpoint,
            "agency_id": agency_id,
            "lead_id": lead_id,
            "status_code": status_code,
            "error_message": error,
            "processed_at": to_iso_utc(utc_now()),
        })
    except Exception:
        logger.exception("Failed to record webhook delivery", extra={"request_id": request_id, "agency_id": agency_id})


async def _handle_delivery(request: Request, settings: Settings, agency_id: Optional[str]) -> JSONResponse:
    request_id = uuid4().hex
    endpoint = request.url.path
    context = {"request_id": request_id, "agency_id": agency_id}
    raw_body = await request.body()

    async def fail(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
        await run_in_threadpool(_log_delivery, request_id, endpoint, agency_id, status_code, None, error)
        return error_response(status_code, error, settings, details)

    try:
        verify_webhook_request(WebhookAuthConfig.from_settings(settings), request.headers, raw_body)
    except LeadDeskError as exc:
        logger.warning("Webhook rejected: %s", exc.message, extra=context)
        return await fail(exc.status_code, exc.message)

    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError as exc:
        return await fail(400, "Invalid JSON body", str(exc))
    if not isinstance(payload, dict):
        return await fail(400, "Webhook body must be a JSON object")

    try:
        result = await run_in_threadpool(ingest_webhook_lead, payload, agency_id=agency_id)
    except LeadDeskError as exc:
        logger.info("Webhook invalid: %s", exc.message, extra=context)
        return await fail(exc.status_code, exc.message)
    except Exception as exc:
        logger.exception("Webhook processing error", extra=context)
        return await fail(500, "Internal server error processing lead", str(exc))

    await run_in_threadpool(_log_delivery, request_id, endpoint, agency_id, 200, result.lead_id)
    logger.info("Webhook processed: %s", result.action.value, extra={**context, "lead_id": result.lead_id})

    response = WebhookResponse(
        success=True,
        message="Lead processed successfully",
        data=WebhookLeadData(
            lead_id=result.lead_id,
            status=result.status,
            agent_assignment=result.agent_assignment,
            action=result.action.value,
            processed_at=result.processed_at,
        ),
    )
    return JSONResponse(status_code=200, content=jsonable_encoder(response))


@router.post(
    "/webhooks/convoso",
    response_model=WebhookResponse,
    responses=_ERROR_RESPONSES,
    summary="Receive Dialer Lead",
    description="Ingest a lead delivered by the dialer webhook."
)
async def receive_lead(request: Request, settings: Settings = Depends(get_settings)):
    """
    Ingest one webhook delivery.

    **Process:**
    1. Verifies the shared key / HMAC signature when configured
    2. Normalizes the payload (field aliases, phone digits)
    3. Updates the stored lead if the lead_id or phone is known
    4. Otherwise stores a new lead and assigns the next agent in rotation

    **Example request:**
    ```json
    {
      "lead_id": "CNV-100234",
      "phone": "(555) 010-2030",
      "firstName": "Jane",
      "state": "TX"
    }
    ```
    """
    return await _handle_delivery(request, settings, None)


@router.post(
    "/webhooks/convoso/{agency_id}",
    response_model=WebhookResponse,
    responses=_ERROR_RESPONSES,
    summary="Receive Dialer Lead For Agency",
    description="Ingest a lead for one agency; only that agency's agents are eligible."
)
async def receive_agency_lead(
    agency_id: str,
    request: Request,
    settings: Settings = Depends(get_settings),
):
    return await _handle_delivery(request, settings, agency_id)
