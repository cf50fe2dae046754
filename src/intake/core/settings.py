"""
Centralized settings for intake-core.

All fields can be set via ``INTAKE_*`` environment variables (e.g.
``INTAKE_RATE_LIMIT_MAX_REQUESTS=10``) or a ``.env`` file.

Order of precedence (highest → lowest):
    1. Environment variables
    2. ``.env`` file
    3. Defaults below
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderMode(str, Enum):
    """Which provider implementations the service container wires in."""

    HTTP = "http"
    FAKE = "fake"


class IntakeSettings(BaseSettings):
    """intake-core configuration."""

    model_config = SettingsConfigDict(
        env_prefix="INTAKE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── API ──────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=12100)
    api_prefix: str = Field(default="/api/v1")
    api_title: str = Field(default="intake-core API")
    api_version: str = Field(default="0.1.0")
    debug: bool = Field(default=False)
    cors_origins: list[str] = Field(default=["*"])

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool | None = Field(default=None, description="None = auto-detect from TTY")

    # ── Admission gate ───────────────────────────────────────────
    rate_limit_max_requests: int = Field(default=5, ge=1)
    rate_limit_window_seconds: float = Field(default=15 * 60, gt=0)
    rate_limit_cleanup_interval: float = Field(default=60, ge=0)

    # ── Circuit breaker ──────────────────────────────────────────
    circuit_failure_threshold: int = Field(default=5, ge=1)
    circuit_cooldown_seconds: float = Field(default=60, gt=0)
    circuit_half_open_successes: int = Field(default=2, ge=1)

    # ── Retry ────────────────────────────────────────────────────
    retry_max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=30.0, ge=0)

    # ── Per-call timeouts ────────────────────────────────────────
    enrichment_timeout: float = Field(default=45.0, gt=0)
    delivery_timeout: float = Field(default=10.0, gt=0)

    # ── Submission queue ─────────────────────────────────────────
    queue_max_size: int = Field(default=1000, ge=1)
    queue_max_retries: int = Field(default=3, ge=1)
    queue_max_age_seconds: float = Field(default=24 * 60 * 60, gt=0)
    queue_cleanup_interval: float = Field(default=5 * 60, ge=0)

    # ── Recovery ─────────────────────────────────────────────────
    admin_api_key: SecretStr | None = Field(default=None)
    recovery_min_retry_interval: float = Field(default=60.0, ge=0)

    # ── Providers ────────────────────────────────────────────────
    provider_mode: ProviderMode = Field(default=ProviderMode.HTTP)
    anthropic_api_key: SecretStr | None = Field(default=None)
    anthropic_model: str = Field(default="claude-3-5-sonnet-20241022")
    anthropic_base_url: str = Field(default="https://api.anthropic.com")
    github_token: SecretStr | None = Field(default=None)
    github_owner: str = Field(default="")
    github_repo: str = Field(default="")
    github_base_url: str = Field(default="https://api.github.com")
    clickup_api_key: SecretStr | None = Field(default=None)
    clickup_list_id: str = Field(default="")
    clickup_base_url: str = Field(default="https://api.clickup.com/api/v2")


@lru_cache(maxsize=1)
def get_settings() -> IntakeSettings:
    """Cached settings: loaded once per process."""
    return IntakeSettings()
