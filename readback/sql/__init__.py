"""
SQL query module for the readback service.

Only the adaptive model state is stored relationally; the queries are plain
strings executed through readback.core.database.

Example usage:
    from readback.sql import SELECT_MODEL_STATE
    from readback.core.database import execute_query_one

    row = await execute_query_one(SELECT_MODEL_STATE, "default")
"""

from readback.sql.model_state_queries import (
    CREATE_MODEL_STATE_TABLE,
    MODEL_STATE_TABLE,
    SELECT_MODEL_STATE,
    UPSERT_MODEL_STATE,
)

__all__ = [
    'MODEL_STATE_TABLE',
    'CREATE_MODEL_STATE_TABLE',
    'SELECT_MODEL_STATE',
    'UPSERT_MODEL_STATE',
]
