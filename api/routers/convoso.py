"""
Dialer Push API Endpoints.

Endpoint for pushing a lead from an agency into its dialer lists.
"""

import logging

from fastapi import APIRouter, Depends

from api.errors import error_response
from api.models import ErrorResponse, PushLeadRequest, PushLeadResponse
from services.config import Settings, get_settings
from services.convoso_client import ConvosoError
from services.errors import LeadDeskError
from services.lead_push_service import push_lead

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/convoso/leads",
    response_model=PushLeadResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid agency_id, phone, or empty list catalog"},
        404: {"model": ErrorResponse, "description": "Agency not found or inactive"},
        409: {"model": ErrorResponse, "description": "Duplicate lead in the dialer"},
        502: {"model": ErrorResponse, "description": "Dialer unreachable"},
        504: {"model": ErrorResponse, "description": "Dialer timed out"},
    },
    summary="Push Lead To Dialer",
    description="Select the best dialer list for a lead and insert it, with bounded retry."
)
def push_lead_to_dialer(request: PushLeadRequest, settings: Settings = Depends(get_settings)):
    """
    Push a lead into an agency's dialer.

    **List selection (first match wins):**
    1. Transfer / warm call -> list named like call, transfer, warm
    2. Carrier named -> list containing the carrier
    3. State given -> list containing the state
    4. Active "data" list
    5. Any active list
    6. First list

    **Example request:**
    ```json
    {
      "agency_id": "123e4567-e89b-12d3-a456-426614174000",
      "lead_data": {"phone": "5550102030", "state": "TX"}
    }
    ```

    **Success response:**
    ```json
    {
      "success": true,
      "convoso_lead_id": "884211",
      "list_id": "563",
      "list_name": "Texas Leads",
      "message": "Lead inserted successfully"
    }
    ```
    """
    try:
        result = push_lead(request.agency_id, request.lead_data)
    except LeadDeskError as exc:
        return error_response(exc.status_code, exc.message, settings)
    except ConvosoError as exc:
        logger.warning("Lead insertion failed (%d): %s", exc.status_code, exc.message)
        return error_response(exc.status_code, exc.message, settings, exc.details)
    except Exception as e:
        logger.exception("Lead insertion error")
        return error_response(500, "Failed to insert lead", settings, str(e))

    return PushLeadResponse(
        success=True,
        convoso_lead_id=result.convoso_lead_id,
        list_id=result.list_id,
        list_name=result.list_name,
        message=result.message,
    )
