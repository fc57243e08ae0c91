"""Settings for the hypotheek MCP server.

Centralized configuration loaded from environment variables (and an
optional ``.env`` file).  Field names double as environment variable
names, e.g. ``API_TIMEOUT_MS=15000`` overrides the client timeout.

Backend endpoints are derived from ``REPLIT_API_URL_BASE``.
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholder key used when running under ENVIRONMENT=test
TEST_API_KEY = "test-replit-api-key"


class Settings(BaseSettings):
    """Hypotheek MCP server configuration.

    ``REPLIT_API_KEY`` is mandatory outside the test environment; every
    other field has a typed default.
    """

    # ── Service identity ────────────────────────────────────────────
    SERVICE_NAME: str = "hypotheek-berekening-server"
    SERVICE_VERSION: str = "4.0.0"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ── Calculation backend ─────────────────────────────────────────
    REPLIT_API_KEY: str = ""
    REPLIT_API_URL_BASE: str = "https://digital-mortgage-calculator.replit.app"

    # ── API client ──────────────────────────────────────────────────
    API_TIMEOUT_MS: int = Field(default=30_000, ge=5_000, le=60_000)
    ENABLE_RETRY: bool = True
    MAX_RETRIES: int = Field(default=3, ge=0, le=5)

    # ── Rate limiting ───────────────────────────────────────────────
    RATE_LIMIT_PER_SESSION: int = Field(default=100, ge=1)  # Requests per 60s window

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_api_key(self) -> "Settings":
        if not self.REPLIT_API_KEY:
            if self.ENVIRONMENT == "test":
                self.REPLIT_API_KEY = TEST_API_KEY
            else:
                raise ValueError("REPLIT_API_KEY is not set. Add it to the environment or your .env file.")
        return self

    # ── Derived endpoints ───────────────────────────────────────────

    @property
    def berekenen_url(self) -> str:
        """Maximum-mortgage calculation endpoint."""
        return f"{self.REPLIT_API_URL_BASE.rstrip('/')}/berekenen/maximaal"

    @property
    def opzet_url(self) -> str:
        """Mortgage set-up (opzet) calculation endpoint."""
        return f"{self.REPLIT_API_URL_BASE.rstrip('/')}/berekenen/opzet-hypotheek"

    @property
    def rentes_url(self) -> str:
        """Current interest rates endpoint."""
        return f"{self.REPLIT_API_URL_BASE.rstrip('/')}/rentes"
