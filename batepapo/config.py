"""Configuration for the bate-papo chat service."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from environment variables (prefix ``BATEPAPO_``) or ``.env``."""

    # Service
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"

    # Comma-separated list of allowed origins, "*" for any
    cors_origins: str = "*"

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "bate-papo-uol"

    # Upper bound for a single store operation (seconds)
    store_timeout_s: float = 5.0
    server_selection_timeout_ms: int = 5000

    # Background reaper; interval and threshold are fixed in reaper.py
    reaper_enabled: bool = True

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = {"env_prefix": "BATEPAPO_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
