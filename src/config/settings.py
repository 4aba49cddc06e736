"""
Swipe Arena - Application Settings

Loads configuration from environment variables using Pydantic Settings.
"""

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase
    supabase_url: str
    supabase_anon_key: str

    # Application
    debug: bool = False
    log_level: str = "INFO"

    # Game tuning
    turn_duration: int = Field(default=30, gt=0)
    tick_interval: float = Field(default=1.0, gt=0)
    max_phase: int = Field(default=3, ge=1, le=3)
    tick_broadcast_every: int = Field(default=2, ge=1)
    deck_size: int = Field(default=40, gt=0)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached singleton settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Apply the configured log level to the root logger."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.debug else settings.log_level.upper()
    logging.basicConfig(level=level, format=_LOG_FORMAT)
