"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Shared
# ============================================================================

class ErrorResponse(BaseModel):
    """Error body returned by every endpoint on failure."""
    success: bool = False
    error: str
    details: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "error": "Missing required fields: lead_id or phone_number"
            }
        }


# ============================================================================
# Webhook Models
# ============================================================================

class WebhookLeadData(BaseModel):
    """Stored lead as seen by the dialer after a delivery."""
    lead_id: str
    status: str
    agent_assignment: Optional[str] = None
    action: str  # "created" or "updated"
    processed_at: datetime


class WebhookResponse(BaseModel):
    """Response for a processed webhook delivery."""
    success: bool
    message: str
    data: WebhookLeadData

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "message": "Lead processed successfully",
                "data": {
                    "lead_id": "CNV-100234",
                    "status": "new",
                    "agent_assignment": "123e4567-e89b-12d3-a456-426614174000",
                    "action": "created",
                    "processed_at": "2025-01-01T12:00:00Z"
                }
            }
        }


# ============================================================================
# Outbound Push Models
# ============================================================================

class PushLeadRequest(BaseModel):
    """Request to push a lead into an agency's dialer."""
    # Checked by the push service so that a bad value answers 400, not 422
    agency_id: Optional[str] = Field(
        None,
        description="Agency UUID"
    )
    lead_data: Dict[str, Any] = Field(
        default_factory=dict,
        description="Lead fields; `phone` is required"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "agency_id": "123e4567-e89b-12d3-a456-426614174000",
                "lead_data": {
                    "phone": "(555) 010-2030",
                    "first_name": "Jane",
                    "last_name": "Doe",
                    "state": "TX",
                    "currentCarrier": "Acme Mutual"
                }
            }
        }


class PushLeadResponse(BaseModel):
    """Response for a lead accepted by the dialer."""
    success: bool
    convoso_lead_id: str
    list_id: str
    list_name: Optional[str] = None
    message: str


# ============================================================================
# Reconciliation Models
# ============================================================================

class ReconciliationResponse(BaseModel):
    """Outcome of one reconciliation sweep."""
    success: bool
    message: str
    fixes_applied: List[str]
    errors: List[str]
    timestamp: datetime
    triggered_by: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "success": False,
                "message": "Reconciliation completed with some errors",
                "fixes_applied": ["Valid agencies ensured", "Fixed 3 orphaned sales"],
                "errors": ["Commission creation error: connection reset"],
                "timestamp": "2025-01-01T12:00:00Z"
            }
        }
