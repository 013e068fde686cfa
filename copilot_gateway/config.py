"""Runtime settings, read from the environment (``.env`` is loaded on import)."""

from __future__ import annotations

from typing import Literal

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from copilot_gateway.exceptions import ConfigurationError


class GatewaySettings(BaseSettings):
    """All knobs for ``create_gateway``. Every field has a working default.

    Each field is read from the upper-cased variable of the same name
    (``PLAN_TTL_SECONDS`` -> ``plan_ttl_seconds``); blank variables count
    as unset.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    # LLM
    llm_provider: Literal["auto", "openai", "anthropic", "fake"] = "auto"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-3-5-haiku-latest"
    llm_timeout_seconds: float = 30.0
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2048

    # Conversation and plan lifetimes (seconds)
    history_limit: int = 10
    plan_ttl_seconds: float = 300.0
    preview_ttl_seconds: float = 300.0
    idempotency_ttl_seconds: float = 86400.0
    conversation_ttl_seconds: float | None = None

    # Rate limits
    max_requests_per_minute: int = 30
    max_failed_operations_per_hour: int = 50

    # Audit
    audit_log_dir: str | None = None

    @field_validator("llm_provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("openai_api_key", "anthropic_api_key", "audit_log_dir", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_env(cls) -> GatewaySettings:
        try:
            return cls()
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid gateway settings: {exc}") from exc
