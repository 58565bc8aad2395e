"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Centralised settings — no hardcoded values anywhere else."""

    # Database
    database_url: str = Field(...)

    # Security
    service_token: str = Field(...)
    allowed_origins: str = Field("http://localhost:5173,http://localhost:3000")

    # App
    app_env: str = Field("development")
    log_level: str = Field("INFO")

    # Per-item serialisation of rating recomputes is off by default;
    # concurrent writers converge on the last persisted recompute.
    serialize_rating_updates: bool = Field(False)
    rating_lock_cache_size: int = Field(10_000)

    # Realtime
    realtime_enabled: bool = Field(True)
    realtime_send_timeout_seconds: float = Field(2.0)

    # Derived
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list."""
        return [o.strip() for o in self.allowed_origins.split(",")]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()


settings = get_settings()
