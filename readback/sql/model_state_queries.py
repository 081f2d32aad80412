"""
Static queries for the relational adaptive-model store.

One row per state key in adaptive_model_state; the whole serialized model
lives in a JSONB column and is replaced on every save.
"""

MODEL_STATE_TABLE = "adaptive_model_state"

CREATE_MODEL_STATE_TABLE = f"""
CREATE TABLE IF NOT EXISTS {MODEL_STATE_TABLE} (
    state_key   TEXT PRIMARY KEY,
    version     TEXT NOT NULL,
    state       JSONB NOT NULL,
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

SELECT_MODEL_STATE = f"""
SELECT state
FROM {MODEL_STATE_TABLE}
WHERE state_key = $1
"""

# $1 state_key, $2 version, $3 serialized state (JSON text)
UPSERT_MODEL_STATE = f"""
INSERT INTO {MODEL_STATE_TABLE} (state_key, version, state, updated_at)
VALUES ($1, $2, $3::jsonb, NOW())
ON CONFLICT (state_key)
DO UPDATE SET
    version = EXCLUDED.version,
    state = EXCLUDED.state,
    updated_at = NOW()
"""
