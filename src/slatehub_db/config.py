"""Application configuration."""

import os
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Database client settings loaded from environment variables."""

    surreal_url: str = "http://127.0.0.1:8000"
    surreal_ns: str = "seceda"
    surreal_db: str = "core"
    surreal_access: str = "user_access"
    http_timeout_seconds: float = 10.0
    token_store_path: Path | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @field_validator("surreal_url")
    @classmethod
    def _strip_rpc_suffix(cls, value: str) -> str:
        return normalize_base_url(value)


def normalize_base_url(raw: str) -> str:
    """Return the server base URL without a trailing slash or `/rpc` path."""
    cleaned = raw.strip().rstrip("/")
    if cleaned.endswith("/rpc"):
        cleaned = cleaned[: -len("/rpc")]
    return cleaned
