"""
Pytest configuration.

This file adds the project root to the Python path so that tests can import
from the domain, repositories, services and api modules, and provides an
in-memory Supabase client for service and endpoint tests.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeSupabase, claim_agent_for_lead  # noqa: E402
from repositories import client as db  # noqa: E402
from services.config import Settings, get_settings  # noqa: E402

SETTINGS_ENV_VARS = (
    "ENVIRONMENT",
    "CONVOSO_API_KEY",
    "CONVOSO_WEBHOOK_SECRET",
    "CONVOSO_API_URL",
    "CONVOSO_TIMEOUT_SECONDS",
    "CONVOSO_MAX_ATTEMPTS",
    "ADMIN_API_TOKEN",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Settings are cached per process; re-read a clean environment for each test."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setitem(Settings.model_config, "env_file", None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_db():
    """In-memory Supabase with the production constraints, row cap and claim function."""
    fake = FakeSupabase(
        unique={
            "convoso_leads": [("lead_id",), ("phone_number",)],
            "commissions": [("sale_id",)],
            "convoso_push_tracking": [("agency_id", "convoso_lead_id")],
        },
        max_rows=1000,
    )
    fake.rpc_handlers["claim_agent_for_lead"] = claim_agent_for_lead(fake)
    db.set_client(fake)
    yield fake
    db.set_client(None)
