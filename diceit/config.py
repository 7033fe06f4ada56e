"""Application Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache), single instance per process
    - house_fee_percent is validated to [0, 100)

Design Decisions:
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = "postgresql+asyncpg://diceit:diceit@db:5432/diceit"

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Game
    house_fee_percent: Decimal = Decimal("2")
    round_countdown_seconds: float = 30.0

    @field_validator("house_fee_percent")
    @classmethod
    def check_fee_percent(cls, v: Decimal) -> Decimal:
        if v < 0 or v >= 100:
            raise ValueError("house_fee_percent must be in [0, 100)")
        return v

    @property
    def fee_rate(self) -> Decimal:
        return self.house_fee_percent / 100

    # Admin (force resolve / cancel). Empty disables admin routes.
    admin_api_key: str = ""

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
