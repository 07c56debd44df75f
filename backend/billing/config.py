"""Application Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (the defaults are dev-only)
    - get_settings() is cached (lru_cache): single instance per process
    - response_encryption_key decodes to a 32, 48 or 64 byte AES-SIV key
"""

import base64
import binascii
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Dev-only key; set RESPONSE_ENCRYPTION_KEY in every deployed environment.
_DEV_ENCRYPTION_KEY = (
    "s7D43iYyJxkShtm5MXeUJP6ImRCCP6cBqOX0SHl9oZsDUKcC2IViGnrfE__eTmPrZway5YxJ-cNaHd6YaSpf9Q=="
)


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Relational store
    database_url: str = (
        "postgresql+asyncpg://billing:billing@db:5432/billing"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting platforms hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Document store
    mongo_url: str = "mongodb://mongo:27017"
    mongo_database: str = "billing"
    mongo_server_selection_timeout_ms: int = 5_000

    # Response encryption
    response_encryption_key: str = _DEV_ENCRYPTION_KEY

    @field_validator("response_encryption_key")
    @classmethod
    def check_encryption_key(cls, v: str) -> str:
        try:
            key = base64.urlsafe_b64decode(v.encode("ascii"))
        except (binascii.Error, ValueError, UnicodeEncodeError) as e:
            raise ValueError("must be urlsafe base64") from e
        if len(key) not in (32, 48, 64):
            raise ValueError(f"must decode to 32, 48 or 64 bytes, got {len(key)}")
        return v

    # Request context
    tenant_header: str = "x-tenant-id"
    context_build_timeout_seconds: float | None = None

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
