"""AdPulse configuration settings."""

from __future__ import annotations

import os
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

DEFAULT_DASHBOARD_URL = (
    "https://public.tableau.com/app/profile/niksa.derek/viz/"
    "FunnelAnalysis_17472437058310/TableView?publish=yes"
)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class RetryConfig(BaseModel):
    """Fixed-delay retry configuration for dashboard fetches."""

    max_attempts: int = 3
    delay_s: float = 5.0

    @field_validator("max_attempts")
    @classmethod
    def _validate_max_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_attempts must be >= 1")
        return value

    @field_validator("delay_s")
    @classmethod
    def _validate_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("delay_s cannot be negative")
        return value


class TimeoutConfig(BaseModel):
    """Per-request timeout budgets."""

    fetch_timeout_s: float = 30.0
    server_timeout_s: float = 10.0


class BrowserConfig(BaseModel):
    """Request identity and rendering options."""

    render_js: bool = Field(
        default_factory=lambda: os.getenv("ADPULSE_RENDER_JS", "").lower() == "true"
    )
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
    accept_language: str = "en-US,en;q=0.5"
    locale: str = "en-US"

    def request_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": self.accept,
            "Accept-Language": self.accept_language,
            "DNT": "1",
            "Upgrade-Insecure-Requests": "1",
        }


class ServerConfig(BaseModel):
    """Credentials for the authenticated Tableau Server REST API."""

    server_url: str = Field(default_factory=lambda: os.getenv("TABLEAU_SERVER_URL", ""))
    username: str = Field(default_factory=lambda: os.getenv("TABLEAU_USERNAME", ""))
    password: str = Field(default_factory=lambda: os.getenv("TABLEAU_PASSWORD", ""))
    site_id: str = Field(default_factory=lambda: os.getenv("TABLEAU_SITE_ID", "default"))
    api_version: str = "3.19"
    workbook: str = "FunnelAnalysis"
    view: str = "TableView"

    @property
    def is_configured(self) -> bool:
        return bool(self.server_url and self.username and self.password)


def _origins_from_env() -> list[str]:
    raw = os.getenv("ADPULSE_ALLOWED_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()] or ["*"]


class ApiConfig(BaseModel):
    """HTTP surface options. Every origin is allowed unless a list is configured."""

    allowed_origins: list[str] = Field(default_factory=_origins_from_env)

    @field_validator("allowed_origins")
    @classmethod
    def _validate_origins(cls, value: list[str]) -> list[str]:
        for origin in value:
            if origin == "*":
                continue
            parsed = urlparse(origin)
            if parsed.scheme not in {"http", "https"} or not parsed.netloc or parsed.path not in {"", "/"}:
                raise ValueError(f"Invalid CORS origin: {origin}")
        if "*" in value and len(value) > 1:
            raise ValueError("Wildcard origin cannot be combined with explicit origins")
        return value


class AdPulseConfig(BaseModel):
    """Root configuration for the extraction engine."""

    dashboard_url: str = Field(
        default_factory=lambda: os.getenv("TABLEAU_DASHBOARD_URL", DEFAULT_DASHBOARD_URL)
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    fallback_on_low_confidence: bool = False
    next_update_hour: int = 8
    log_level: str = Field(default_factory=lambda: os.getenv("ADPULSE_LOG_LEVEL", "INFO"))

    @field_validator("dashboard_url")
    @classmethod
    def _validate_dashboard_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"Invalid dashboard URL: {value}")
        return value

    @field_validator("next_update_hour")
    @classmethod
    def _validate_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("next_update_hour must be between 0 and 23")
        return value
