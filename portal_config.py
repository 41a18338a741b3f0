#!/usr/bin/env python3
"""
Configuration for the PermitInfo plate automation service.

Everything the sessions need is carried on an explicit Config object that
the server builds once at startup and hands to every session.

Environment:
    PORTAL_BASE_URL         Portal root (default: https://columbus.permitinfo.net)
    PORTAL_USERNAME         Portal login
    PORTAL_PASSWORD         Portal password
    PORTAL_HEADLESS         Run Chromium headless (default: true)
    DEBUG                   Capture diagnostic screenshots (default: false)
    HOST / PORT             Listening address (default: 0.0.0.0:3000)
    ENRICHMENT_CONCURRENCY  Max detail pages open at once (default: 4)
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

from portal_errors import AuthError

DEFAULT_BASE_URL = "https://columbus.permitinfo.net"

# Headers to mimic browser requests
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Credentials(BaseModel):
    """Portal login pair."""
    username: str
    password: str


class Config(BaseModel):
    """Application configuration."""

    # Portal
    base_url: str = DEFAULT_BASE_URL
    username: Optional[str] = None
    password: Optional[str] = None
    user_agent: str = DEFAULT_USER_AGENT

    # Browser
    headless: bool = True
    debug: bool = False

    # Bounds (milliseconds)
    page_timeout_ms: int = 30000
    login_field_timeout_ms: int = 10000
    detail_link_timeout_ms: int = 1000
    quiescence_timeout_ms: int = 10000

    # Enrichment fan-out
    enrichment_concurrency: int = Field(default=4, ge=1)

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Config":
        """Build a Config from environment variables."""
        return cls(
            base_url=os.getenv("PORTAL_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            username=os.getenv("PORTAL_USERNAME") or None,
            password=os.getenv("PORTAL_PASSWORD") or None,
            headless=_env_bool("PORTAL_HEADLESS", True),
            debug=_env_bool("DEBUG", False),
            enrichment_concurrency=int(os.getenv("ENRICHMENT_CONCURRENCY", "4")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def credentials(self) -> Credentials:
        """
        Return the configured login pair.

        Raises AuthError when either half is missing, so a misconfigured
        server fails before a browser is ever launched.
        """
        if not self.has_credentials:
            raise AuthError(
                "Portal credentials are not set. "
                "Export PORTAL_USERNAME and PORTAL_PASSWORD before starting the server."
            )
        return Credentials(username=self.username, password=self.password)

    @property
    def login_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/index.aspx"
