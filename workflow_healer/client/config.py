"""Configuration for the n8n HTTP client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

DEFAULT_N8N_URL = "http://localhost:5678"


@dataclass(frozen=True)
class Settings:
    """Immutable n8n connection settings.

    Environment variables (a .env file is read first; real env vars win):
      N8N_API_KEY       — sent as X-N8N-API-KEY
      N8N_API_URL       — instance root, without /api/v1 (default: localhost:5678)
      N8N_TIMEOUT       — per-request timeout in seconds (default: 30)
      HEALER_LOG_LEVEL  — level for configure_logging() (default: WARNING)
    """

    api_key: str = field(repr=False)
    api_endpoint: str = DEFAULT_N8N_URL
    timeout: int = 30
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, env_file: str | None = ".env") -> Settings:
        if env_file:
            load_dotenv(env_file, override=False)
        return cls(
            api_key=os.getenv("N8N_API_KEY", ""),
            api_endpoint=os.getenv("N8N_API_URL", DEFAULT_N8N_URL).rstrip("/"),
            timeout=int(os.getenv("N8N_TIMEOUT", "30")),
            log_level=os.getenv("HEALER_LOG_LEVEL", "WARNING").upper(),
        )

    @property
    def base_url(self) -> str:
        return f"{self.api_endpoint}/api/v1"

    @property
    def headers(self) -> dict[str, str]:
        h: dict[str, str] = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            h["X-N8N-API-KEY"] = self.api_key
        return h
