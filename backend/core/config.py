"""Application settings loaded from the environment."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide configuration, read once at startup."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = "local"
    app_name: str = "Inkpost API"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./inkpost.db"

    jwt_secret_key: str = Field(default="change-me-in-production", min_length=1)
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=60 * 24 * 7, gt=0)
    allow_insecure_http_cookies: bool = False

    # Comma-separated list of allowed browser origins.
    cors_allowed_origins: str = "http://localhost:3000"

    redis_url: str = "redis://localhost:6379/0"
    rate_limit_requests: int = Field(default=120, ge=0)
    rate_limit_window_seconds: int = Field(default=60, ge=0)
    # Separate, tighter budget for login and registration; 0 disables it.
    rate_limit_auth_requests: int = Field(default=20, ge=0)

    @property
    def cors_origins(self) -> list[str]:
        return [
            origin.strip()
            for origin in self.cors_allowed_origins.split(",")
            if origin.strip()
        ]


settings = Settings()
