"""
Lead Routing API - Main Application.

FastAPI application receiving dialer webhooks, pushing agency leads to the
dialer, and exposing the reconciliation sweep.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.logging_config import configure_logging
from services.config import get_settings
from services.webhook_auth import AuthMode, WebhookAuthConfig

configure_logging()
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Lead Routing API",
    description="Dialer lead ingestion, agent assignment, dialer push and data reconciliation",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# TODO: Restrict origins once the agency portal domain is fixed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def webhook_auth_mode() -> AuthMode:
    return WebhookAuthConfig.from_settings(get_settings()).mode


if webhook_auth_mode() is AuthMode.OPEN:
    logger.warning(
        "Webhook authentication is OPEN: neither CONVOSO_API_KEY nor "
        "CONVOSO_WEBHOOK_SECRET is set, every delivery will be accepted"
    )


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status, version and webhook authentication mode.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "lead-routing-api",
        "webhook_auth": webhook_auth_mode().value,
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Lead Routing API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import convoso, reconciliation, webhooks

app.include_router(webhooks.router, prefix="/api/v1", tags=["Webhooks"])
app.include_router(convoso.router, prefix="/api/v1", tags=["Dialer"])
app.include_router(reconciliation.router, prefix="/api/v1", tags=["Reconciliation"])
