"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. All keys use
the ``ACMS_`` prefix and may also be supplied through a ``.env`` file.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the ACMS service.

    Leaving ``backend_url`` empty runs the service against the
    in-process complaint store, which is what development and the test
    suite use.
    """

    model_config = SettingsConfigDict(
        env_prefix="ACMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # ── Rate Limiting ──────────────────────────────────────────────────
    rate_limit_per_minute: int = 60
    lookup_rate_limit_per_minute: int = 10
    trusted_proxy_count: int = Field(default=1, ge=0)

    # ── Admin API Key ──────────────────────────────────────────────────
    admin_api_key: str = ""

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"

    # ── Hosted backend (PostgREST-style) ───────────────────────────────
    backend_url: str = ""
    backend_api_key: str = ""
    backend_timeout_seconds: float = 10.0
    backend_max_retries: int = Field(default=3, ge=1)

    # ── Tracking identifiers ───────────────────────────────────────────
    tracking_id_prefix: str = "ACMS"
    tracking_id_max_attempts: int = Field(default=5, ge=1)

    # ── Text screening ─────────────────────────────────────────────────
    screening_policy: Literal["reject", "mask"] = "reject"
    extra_blocked_terms: str = ""
    allowed_terms: str = ""

    # ── Polls ──────────────────────────────────────────────────────────
    seed_demo_polls: bool = True

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def extra_blocked_term_list(self) -> list[str]:
        return [t.strip() for t in self.extra_blocked_terms.split(",") if t.strip()]

    @property
    def allowed_term_list(self) -> list[str]:
        return [t.strip() for t in self.allowed_terms.split(",") if t.strip()]


# Module-level singleton; import ``settings`` everywhere.
settings = Settings()
