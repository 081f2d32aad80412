"""
Settings and environment management for the readback analysis service.

Configuration is loaded by pydantic-settings from environment variables and an
optional .env file. Access goes through get_settings(), which is cached so the
environment is parsed once per process.

Environment Variables:
- STATE_BACKEND: "memory" (default) or "postgres"
- DATABASE_URL: PostgreSQL DSN, required only for the postgres state backend
- STATE_KEY: Row key under which the model state is stored (default: "default")
- LOG_LEVEL: Root logging level (default: INFO)

Engine Defaults:
- parser_min_segment_length: 10 (quoted segments shorter than this are dropped)
- pairing_window: 3 (lines searched after an ATC instruction for the readback)
- issue_window: 5 (sliding window of the issue accumulator, in lines)
- max_history_size: 1000 (capacity of the correction log)

Usage:
    from readback.core.config import get_settings

    settings = get_settings()
    window = settings.pairing_window
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        state_backend: Where the adaptive model state is checkpointed.
        database_url: PostgreSQL connection string for the postgres backend.
        state_key: Row key of the persisted model state.
        parser_min_segment_length: Minimum length of a quoted dialogue segment.
        pairing_window: Forward search distance for a pilot response.
        issue_window: Line span of the issue accumulator window.
        max_history_size: Default capacity of the correction history.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Service
    # =========================================================================

    app_name: str = "Readback Analysis Engine"
    api_prefix: str = "/api"
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000"]

    # =========================================================================
    # State Persistence
    # =========================================================================

    # "memory" keeps the model state in process; "postgres" checkpoints it
    state_backend: str = "memory"

    # Only read when state_backend == "postgres"
    database_url: Optional[str] = None

    state_key: str = "default"

    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_command_timeout: float = 60.0

    # =========================================================================
    # Engine Defaults
    # =========================================================================

    parser_min_segment_length: int = 10

    pairing_window: int = 3

    issue_window: int = 5

    max_history_size: int = 1000


@lru_cache()
def get_settings() -> Settings:
    """
    Return the cached Settings instance.

    Tests that need different values should call get_settings.cache_clear()
    after patching the environment.
    """
    return Settings()
