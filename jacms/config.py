"""JA-CMS configuration system using Pydantic Settings."""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class JaCmsConfig(BaseSettings):
    """Main configuration class. Loads from .env file and environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "JA-CMS"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: str = "http://localhost:3000"

    # Database
    database_url: str = "sqlite+aiosqlite:///./jacms.db"

    # Auth
    secret_key: str = "CHANGE_ME_IN_PRODUCTION"
    jwt_algorithm: str = "HS256"
    jwt_expiry_minutes: int = 60 * 24

    # Seeded on first start unless a user already holds this email or username
    admin_email: str = "admin@jacms.local"
    admin_username: str = "admin"
    admin_password: str = "admin"

    # Logging
    log_dir: str = "logs"
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    # Listing
    default_page_size: int = 10
    max_page_size: int = 100
    default_tag_limit: int = 50

    # Category rules; an interval of 0 turns off scheduled auto-categorization
    rules_interval_minutes: int = 60
    rules_min_confidence: float = 0.8
    rules_log_retention_days: int = 30

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        allowed = {"HS256", "HS384", "HS512"}
        if v not in allowed:
            raise ValueError(f"jwt_algorithm must be one of {allowed}")
        return v


def get_config() -> JaCmsConfig:
    """Factory function to create config instance."""
    return JaCmsConfig()
