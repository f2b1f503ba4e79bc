"""Healer settings — orchestration knobs read from the environment.

Connection settings for the engine live in workflow_healer.client.config;
this module only owns what the healing pass itself needs.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ESCALATION_RATIO: float = 0.5


class HealerSettings(BaseSettings):
    """Settings for the healing orchestrator.

    Automatically reads from environment variables (or a .env file).
    Just instantiate: HealerSettings()

    Environment variables:
      HEALER_PROBE_ENABLED     — Submit candidates to the engine (default: true)
      HEALER_PROBE_TIMEOUT     — Create/delete budget in seconds (default: 10.0)
      HEALER_ESCALATION_RATIO  — Residual/initial error ratio above which a
                                 result needs review, 0.0–1.0 (default: 0.5)
      HEALER_DEADLINE          — Whole-run deadline in seconds; unset = none
      HEALER_LEDGER_PATH       — SQLite ledger file; unset = no ledger
      HEALER_HISTORY_SIZE      — Namespaces kept by HealingHistory (default: 128)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    probe_enabled: bool = Field(default=True, validation_alias="HEALER_PROBE_ENABLED")
    probe_timeout: float = Field(default=10.0, validation_alias="HEALER_PROBE_TIMEOUT")
    escalation_ratio: float = Field(
        default=DEFAULT_ESCALATION_RATIO, validation_alias="HEALER_ESCALATION_RATIO"
    )
    deadline: float | None = Field(default=None, validation_alias="HEALER_DEADLINE")
    ledger_path: str | None = Field(default=None, validation_alias="HEALER_LEDGER_PATH")
    history_size: int = Field(default=128, validation_alias="HEALER_HISTORY_SIZE")

    @field_validator("deadline", "ledger_path", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: object) -> object:
        """Treat an empty variable as unset."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @field_validator("deadline")
    @classmethod
    def positive_deadline(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            return None
        return v

    @field_validator("probe_timeout")
    @classmethod
    def clamp_probe_timeout(cls, v: float) -> float:
        return v if v > 0 else 10.0

    @field_validator("escalation_ratio")
    @classmethod
    def clamp_escalation_ratio(cls, v: float) -> float:
        return max(0.0, min(1.0, v))

    @field_validator("history_size")
    @classmethod
    def clamp_history_size(cls, v: int) -> int:
        return max(1, v)

    @classmethod
    def from_env(cls) -> HealerSettings:
        return cls()
