"""
Service configuration.

All settings come from ACCOUNTLINK_* environment variables. Credential
storage and rotation belong to the deployment, not to this package.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LinkSettings(BaseModel):
    """Settings for the link service and its collaborators."""
    base_url: str = Field(description="Base URL of the account lookup service")
    server_password: str = Field(default="", description="Authorization header sent on lookup calls")
    lookup_path: str = Field(default="/gsp/lookup")
    lookup_timeout: float = Field(default=10.0, gt=0)
    db_path: str = Field(default="accountlink.db")
    role_sync_url: Optional[str] = Field(default=None, description="Webhook triggered after a successful link")
    discord_token: Optional[str] = Field(default=None, description="Bot token for display name lookups")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8310, ge=1, le=65535)

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        """Require an absolute http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must use http or https scheme: {v}")
        return v.rstrip("/")

    @classmethod
    def from_env(cls) -> "LinkSettings":
        """
        Build settings from the environment.

        Raises:
            ValueError: If ACCOUNTLINK_BASE_URL is missing or any value is invalid
        """
        base_url = os.getenv("ACCOUNTLINK_BASE_URL")
        if not base_url:
            raise ValueError("ACCOUNTLINK_BASE_URL must be set")

        values = {
            'base_url': base_url,
            'server_password': os.getenv("ACCOUNTLINK_SERVER_PASSWORD", ""),
            'lookup_path': os.getenv("ACCOUNTLINK_LOOKUP_PATH", "/gsp/lookup"),
            'lookup_timeout': os.getenv("ACCOUNTLINK_LOOKUP_TIMEOUT", "10"),
            'db_path': os.getenv("ACCOUNTLINK_DB_PATH", "accountlink.db"),
            'role_sync_url': os.getenv("ACCOUNTLINK_ROLE_SYNC_URL") or None,
            'discord_token': os.getenv("ACCOUNTLINK_DISCORD_TOKEN") or None,
            'host': os.getenv("ACCOUNTLINK_HOST", "127.0.0.1"),
            'port': os.getenv("ACCOUNTLINK_PORT", "8310"),
        }
        return cls(**values)
