"""Application settings and configuration."""

import sys
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_SESSION_DEFAULTS = {"change-me-in-production", "secret", "your_nextauth_secret_here"}


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "tarana"
    env: str = "development"
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    allowed_origins: str = "http://localhost:3000"

    # Session tokens are issued by the identity provider and signed with a shared secret
    session_secret_key: str = "change-me-in-production"
    session_algorithm: str = "HS256"

    # Database
    database_url: str = "sqlite:///./tarana.db"
    database_echo: bool = False

    # How credit consumption reaches the store:
    # "stored_procedure" calls the consume_credits() PostgreSQL function,
    # "transaction" runs the same steps in one row-locked transaction.
    credit_procedure: Literal["transaction", "stored_procedure"] = "transaction"

    # Credit history paging
    history_default_limit: int = Field(default=20, ge=1)
    history_max_limit: int = Field(default=100, ge=1)

    # Referrals
    recent_referrals_limit: int = 10
    referral_code_length: int = 8
    validate_rate_limit: str = "30/minute"


# Global settings instance
settings = Settings()

# ── Security validation ──────────────────────────────────────────────
if settings.env == "production":
    if settings.session_secret_key in _INSECURE_SESSION_DEFAULTS or len(settings.session_secret_key) < 32:
        print(
            "\n❌  FATAL: SESSION_SECRET_KEY is insecure or too short (min 32 chars).\n"
            "   Use the same secret as the identity provider (e.g. NEXTAUTH_SECRET).\n",
            file=sys.stderr,
        )
        sys.exit(1)
