# core/config.py
"""
Configuration settings for the Darna authentication service.
"""
import warnings
from functools import lru_cache
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ACCESS_SECRET = "change-this-access-secret"
DEFAULT_REFRESH_SECRET = "change-this-refresh-secret"


class Settings(BaseSettings):
    """
    Centralized application settings.
    Every field can be overridden by a DARNA_-prefixed environment variable.
    """
    model_config = SettingsConfigDict(
        env_prefix="DARNA_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # --- Application ---
    APP_NAME: str = "Darna Auth"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api/auth"

    # --- Database ---
    DATABASE_URL: str = "sqlite+aiosqlite:///./darna.db"
    ECHO_SQL: bool = False

    # --- Tokens ---
    JWT_ACCESS_SECRET: str = DEFAULT_ACCESS_SECRET
    JWT_REFRESH_SECRET: str = DEFAULT_REFRESH_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # --- Passwords ---
    BCRYPT_ROUNDS: int = 12

    # --- Two-factor ---
    TOTP_ISSUER: str = "Darna"
    TOTP_VALID_WINDOW: int = 2
    RECOVERY_CODE_COUNT: int = 10

    # --- Initial admin ---
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None
    ADMIN_NAME: str = "Administrator"

    # --- Server ---
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    @field_validator("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET")
    def validate_secret(cls, v):
        if v in (DEFAULT_ACCESS_SECRET, DEFAULT_REFRESH_SECRET):
            warnings.warn("Using a default JWT secret is insecure outside development!")
        return v

    @field_validator("BCRYPT_ROUNDS")
    def validate_rounds(cls, v):
        if not 4 <= v <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return v

    @model_validator(mode="after")
    def secrets_must_differ(self):
        if self.JWT_ACCESS_SECRET == self.JWT_REFRESH_SECRET:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be different")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get application settings with caching."""
    return Settings()


__all__ = ["Settings", "get_settings"]
