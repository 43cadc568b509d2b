"""
Application settings.

Values come from the process environment and a `.env` file at the project
root. Supabase credentials are read by `repositories.client`; everything
else the services and routers need lives here.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

env_path = Path(__file__).parent.parent / ".env"

DEFAULT_CONVOSO_API_URL = "https://api.convoso.com/v1/leads/insert"


class Settings(BaseSettings):
    """
    Runtime configuration.

    Environment variables:
        ENVIRONMENT              - "development" exposes error details in responses
        CONVOSO_API_KEY          - shared secret expected on inbound webhooks
        CONVOSO_WEBHOOK_SECRET   - HMAC-SHA256 signing secret for inbound webhooks
        CONVOSO_API_URL          - dialer lead insert endpoint
        CONVOSO_TIMEOUT_SECONDS  - hard deadline per outbound attempt
        CONVOSO_MAX_ATTEMPTS     - total outbound attempts
        ADMIN_API_TOKEN          - token required on administrative endpoints
        LOG_LEVEL / LOG_FORMAT   - see api.logging_config
    """

    model_config = SettingsConfigDict(
        env_file=env_path,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    environment: str = Field(default="production", alias="ENVIRONMENT")

    # Inbound webhook authentication; both unset means OPEN mode
    convoso_api_key: Optional[str] = Field(default=None, alias="CONVOSO_API_KEY")
    convoso_webhook_secret: Optional[str] = Field(default=None, alias="CONVOSO_WEBHOOK_SECRET")

    # Outbound dialer delivery
    convoso_api_url: str = Field(default=DEFAULT_CONVOSO_API_URL, alias="CONVOSO_API_URL")
    convoso_timeout_seconds: float = Field(default=10.0, gt=0, alias="CONVOSO_TIMEOUT_SECONDS")
    convoso_max_attempts: int = Field(default=2, ge=1, alias="CONVOSO_MAX_ATTEMPTS")

    admin_api_token: Optional[str] = Field(default=None, alias="ADMIN_API_TOKEN")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")

    @field_validator(
        "convoso_api_key", "convoso_webhook_secret", "admin_api_token", mode="before"
    )
    @classmethod
    def _blank_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    @field_validator("log_level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("log_format", "environment")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
