"""
Core infrastructure for the readback service: settings, the asyncpg pool
used by the relational state store, and FastAPI dependencies.
"""

from readback.core.config import Settings, get_settings
from readback.core.database import (
    close_db,
    execute_command,
    execute_query_one,
    get_db_pool,
    init_db,
)

__all__ = [
    "Settings",
    "get_settings",
    "init_db",
    "get_db_pool",
    "close_db",
    "execute_query_one",
    "execute_command",
]
