"""
Adaptive model store.

ModelStore owns the single live AdaptiveModelState for the process. Every
mutation runs under one asyncio.Lock against a deep copy of the state; the
copy replaces the live state only once the learning function has returned,
so concurrent readers either see the state before or after an update, never
half of it. After each mutation the state is handed to a StateBackend.

Backends:
- InMemoryStateBackend keeps the last saved document in a dict (default).
- PostgresStateBackend upserts one JSONB row per state key.

A backend failure is a PersistenceError. On load the store falls back to a
fresh default model; on save the in-memory state stays authoritative and the
message is kept in last_persistence_error for the API to report.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, TypeVar

import asyncpg

from readback.core.config import get_settings
from readback.core.database import execute_command, execute_query_one
from readback.models import (
    AdaptiveModelState,
    AnalysisInput,
    AnalysisResult,
    ConfigUpdate,
    ModelStats,
    SessionResults,
    UserCorrection,
    WeightUpdate,
)
from readback.services import learning
from readback.services.analyzer import analyze
from readback.sql import CREATE_MODEL_STATE_TABLE, SELECT_MODEL_STATE, UPSERT_MODEL_STATE

logger = logging.getLogger(__name__)

# Driver, connection and timeout failures surfaced as PersistenceError
BACKEND_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    asyncio.TimeoutError,
    OSError,
    ValueError,
)

T = TypeVar("T")


class PersistenceError(Exception):
    """A state backend could not load or save the model."""


# =============================================================================
# Backends
# =============================================================================


class StateBackend(Protocol):
    """Where the serialized model lives between process restarts."""

    async def load(self) -> Optional[Dict[str, Any]]:
        ...

    async def save(self, document: Dict[str, Any]) -> None:
        ...


class InMemoryStateBackend:
    """Keeps the last saved document in memory."""

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self._document = document

    async def load(self) -> Optional[Dict[str, Any]]:
        return self._document

    async def save(self, document: Dict[str, Any]) -> None:
        self._document = document


class PostgresStateBackend:
    """
    One row per state key in adaptive_model_state.

    Connections come from the shared asyncpg pool in readback.core.database.
    Any asyncpg or connection failure is re-raised as PersistenceError.
    """

    def __init__(self, state_key: Optional[str] = None):
        self.state_key = state_key or get_settings().state_key
        self._table_ready = False

    async def _ensure_table(self) -> None:
        if not self._table_ready:
            await execute_command(CREATE_MODEL_STATE_TABLE)
            self._table_ready = True

    async def load(self) -> Optional[Dict[str, Any]]:
        try:
            await self._ensure_table()
            row = await execute_query_one(SELECT_MODEL_STATE, self.state_key)
            if row is None:
                return None
            state = row["state"]
            # asyncpg hands JSONB back as text unless a codec is registered
            return json.loads(state) if isinstance(state, str) else dict(state)
        except BACKEND_ERRORS as e:
            raise PersistenceError(f"Failed to load model state '{self.state_key}': {str(e)}") from e

    async def save(self, document: Dict[str, Any]) -> None:
        try:
            await self._ensure_table()
            await execute_command(
                UPSERT_MODEL_STATE,
                self.state_key,
                document.get("version", ""),
                json.dumps(document),
            )
        except BACKEND_ERRORS as e:
            raise PersistenceError(f"Failed to save model state '{self.state_key}': {str(e)}") from e


def create_backend(kind: Optional[str] = None) -> StateBackend:
    """Backend named by STATE_BACKEND ("memory" or "postgres")."""
    kind = (kind or get_settings().state_backend).lower()
    if kind == "postgres":
        return PostgresStateBackend()
    if kind == "memory":
        return InMemoryStateBackend()
    raise ValueError(f"Unknown state backend: {kind}")


# =============================================================================
# Model Store
# =============================================================================


class ModelStore:
    """
    Single-writer owner of the adaptive model.

    Usage:
        store = ModelStore(InMemoryStateBackend())
        await store.load()
        result = await store.analyze(AnalysisInput(atc=..., pilot=...))
        stats, updates = await store.apply_correction(correction)
    """

    def __init__(self, backend: Optional[StateBackend] = None, max_history_size: Optional[int] = None):
        self.backend: StateBackend = backend or InMemoryStateBackend()
        self._max_history_size = max_history_size
        self._state = learning.create_default_state(max_history_size)
        self._lock = asyncio.Lock()
        self.last_persistence_error: Optional[str] = None

    async def load(self) -> AdaptiveModelState:
        """Replace the live state with the backend's copy, or defaults if there is none."""
        async with self._lock:
            try:
                document = await self.backend.load()
            except PersistenceError as e:
                logger.warning(f"Model state unavailable, starting from defaults: {str(e)}")
                self.last_persistence_error = str(e)
                document = None

            if document is None:
                self._state = learning.create_default_state(self._max_history_size)
            else:
                self._state = learning.deserialize(document)
            logger.info(
                f"Model loaded: version={self._state.version} "
                f"interactions={self._state.history.totalInteractions}"
            )
            return self._state.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def snapshot(self) -> AdaptiveModelState:
        """Deep copy of the live state."""
        return self._state.model_copy(deep=True)

    def stats(self) -> ModelStats:
        return learning.get_stats(self._state)

    def export(self) -> Dict[str, Any]:
        return learning.serialize(self._state)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def _persist(self) -> None:
        try:
            await self.backend.save(learning.serialize(self._state))
            self.last_persistence_error = None
        except PersistenceError as e:
            logger.warning(f"Model state kept in memory only: {str(e)}")
            self.last_persistence_error = str(e)

    async def _mutate(self, change: Callable[[AdaptiveModelState], Tuple[AdaptiveModelState, T]]) -> T:
        async with self._lock:
            working = self._state.model_copy(deep=True)
            new_state, outcome = change(working)
            self._state = new_state
            await self._persist()
            return outcome

    async def analyze(self, data: AnalysisInput) -> AnalysisResult:
        """Analyze against a snapshot, then count the interaction."""
        result = analyze(data, self.snapshot())
        await self._mutate(lambda s: (learning.record_interaction(s, result.isCorrect), None))
        return result

    async def apply_correction(self, correction: UserCorrection) -> Tuple[ModelStats, List[WeightUpdate]]:
        updates = await self._mutate(lambda s: learning.apply_correction(s, correction))
        return self.stats(), updates

    async def batch_learn(self, corrections: Sequence[UserCorrection]) -> Tuple[ModelStats, List[WeightUpdate]]:
        """All corrections are applied under a single hold of the writer lock."""
        updates = await self._mutate(lambda s: learning.batch_learn(s, corrections))
        logger.info(f"Batch learning: {len(corrections)} corrections, {len(updates)} weight updates")
        return self.stats(), updates

    async def reinforce(self, session: SessionResults) -> ModelStats:
        """
        Raises:
            ValueError: If the session has no readbacks; the state is untouched.
        """
        await self._mutate(lambda s: (learning.reinforce(s, session), None))
        return self.stats()

    async def update_config(self, update: ConfigUpdate) -> AdaptiveModelState:
        await self._mutate(lambda s: (learning.update_config(s, update), None))
        return self.snapshot()

    async def reset(self, preserve_history: bool = False) -> AdaptiveModelState:
        await self._mutate(lambda s: (learning.reset(s, preserve_history), None))
        return self.snapshot()

    async def import_state(self, document: Any, strict: bool = False) -> AdaptiveModelState:
        """
        Replace the model with an exported document.

        Malformed documents load as a default model. With strict=True a
        failed save is raised as PersistenceError after the in-memory swap.
        """
        imported = learning.deserialize(document)
        await self._mutate(lambda s: (imported, None))
        logger.info(f"Model imported: version={imported.version}")
        if strict and self.last_persistence_error:
            raise PersistenceError(self.last_persistence_error)
        return self.snapshot()
