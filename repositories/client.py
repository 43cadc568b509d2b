"""
Supabase client initialization.

This module contains *only* the database connection setup and exposes
`get_client()` for the repository modules.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)

The client is created on first use so that importing services (and their
tests) never requires credentials. `set_client()` swaps in another client,
e.g. an in-memory fake in tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

# Load environment variables from the project root .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_client: Any = None


def _create_from_env() -> Client:
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_KEY")

    if not supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(supabase_url, supabase_key)


def get_client() -> Client:
    """Return the shared Supabase client, creating it on first call."""

    global _client
    if _client is None:
        _client = _create_from_env()
    return _client


def set_client(client: Any) -> None:
    """Replace the shared client (None resets to lazy creation from env)."""

    global _client
    _client = client


__all__ = ["get_client", "set_client"]
