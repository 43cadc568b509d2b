"""
Error responses.

Every failure is answered as `{success: false, error, details?}`. Internal
details are only exposed when ENVIRONMENT=development.
"""

from __future__ import annotations

from typing import Optional

from fastapi.responses import JSONResponse

from services.config import Settings


def error_response(
    status_code: int,
    error: str,
    settings: Settings,
    details: Optional[str] = None,
) -> JSONResponse:
    content = {"success": False, "error": error}
    if details and settings.is_development:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)
