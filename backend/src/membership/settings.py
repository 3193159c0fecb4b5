"""Application settings and configuration."""

import re
import sys

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_JWT_DEFAULTS = {"change-me-in-production", "secret", "your_jwt_secret_key_here_at_least_32_characters"}
_HEX_KEY_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "membership"
    env: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"  # console | json
    allowed_origins: str = "http://localhost:5173"
    trust_proxy: bool = False  # take the client IP from X-Forwarded-For

    # Secrets (both required at startup)
    jwt_access_secret: str | None = None
    bank_secret_key: str | None = None  # 64 hex chars = 32 bytes

    # Database
    database_url: str = "sqlite:///./membership.db"

    # Tokens
    access_token_ttl_days: int = 7

    # Referral
    referral_link_base: str = "http://localhost:5173/register"


def missing_secrets(config: "Settings") -> list[str]:
    """List startup problems with the two process-wide secrets."""
    problems = []
    if not config.jwt_access_secret:
        problems.append("JWT_ACCESS_SECRET is not set")
    if not config.bank_secret_key:
        problems.append("BANK_SECRET_KEY is not set")
    elif not _HEX_KEY_PATTERN.match(config.bank_secret_key):
        problems.append("BANK_SECRET_KEY must be 64 hex characters (32 bytes)")
    return problems


# Global settings instance
settings = Settings()

# ── Security validation ──────────────────────────────────────────────
if settings.env == "production":
    _problems = missing_secrets(settings)
    if settings.jwt_access_secret and (
        settings.jwt_access_secret in _INSECURE_JWT_DEFAULTS or len(settings.jwt_access_secret) < 32
    ):
        _problems.append("JWT_ACCESS_SECRET is insecure or too short (min 32 chars)")
    if _problems:
        print(
            "\n❌  FATAL: " + "; ".join(_problems) + "\n"
            "   Generate values with:  openssl rand -hex 32\n",
            file=sys.stderr,
        )
        sys.exit(1)
