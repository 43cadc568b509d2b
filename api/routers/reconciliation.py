"""
Reconciliation API Endpoints.

Administrative trigger for the reconciliation sweep.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from api.errors import error_response
from api.models import ErrorResponse, ReconciliationResponse
from services.config import Settings, get_settings
from services.errors import AdminAuthError, LeadDeskError
from services.reconciliation_service import run_reconciliation_sweep

logger = logging.getLogger(__name__)

router = APIRouter()

# Multi-Status: the sweep ran but at least one step failed
PARTIAL_SUCCESS_STATUS = 207


def _require_admin(settings: Settings, presented: Optional[str]) -> None:
    expected = settings.admin_api_token
    if not expected:
        return
    if not presented or not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        raise AdminAuthError("Forbidden: invalid admin token")


@router.post(
    "/admin/reconciliation",
    response_model=ReconciliationResponse,
    responses={
        207: {"model": ReconciliationResponse, "description": "Partial success"},
        403: {"model": ErrorResponse, "description": "Missing or wrong admin token"},
        500: {"model": ErrorResponse, "description": "Sweep failed to run"},
    },
    summary="Run Reconciliation Sweep",
    description="Repair orphaned users, sales and missing commissions."
)
def run_reconciliation(
    triggered_by: Optional[str] = Query(None, description="Recorded in the audit log"),
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
    settings: Settings = Depends(get_settings),
):
    """
    Run the reconciliation sweep once.

    Returns 200 when every step succeeded, 207 when the sweep completed with
    step errors (listed in `errors`), and 500 if the sweep could not run.
    """
    try:
        _require_admin(settings, x_admin_token)
    except LeadDeskError as exc:
        logger.warning("Reconciliation trigger rejected: %s", exc.message)
        return error_response(exc.status_code, exc.message, settings)

    try:
        report = run_reconciliation_sweep(triggered_by=triggered_by or "api")
    except Exception as e:
        logger.exception("Reconciliation sweep failed")
        return error_response(500, "Database fix failed", settings, str(e))

    response = ReconciliationResponse(
        success=report.success,
        message=(
            "Database integrity restored successfully"
            if report.success
            else "Reconciliation completed with some errors"
        ),
        fixes_applied=report.fixes_applied,
        errors=report.errors,
        timestamp=report.timestamp,
        triggered_by=report.triggered_by,
    )
    status_code = 200 if report.success else PARTIAL_SUCCESS_STATUS
    return JSONResponse(status_code=status_code, content=jsonable_encoder(response))
