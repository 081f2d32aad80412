"""
Pytest Configuration and Shared Fixtures for the Readback Analysis Engine.

This module provides fixtures and configuration for all tests, supporting:
- Async test execution with pytest-asyncio
- Mock database pool fixtures for the postgres state backend without a
  real database
- Fresh adaptive model states and in-memory model stores
- A FastAPI TestClient wired to an in-memory model store
- Sample ATC transcripts in the supported quoting conventions

Dependency References:
- readback/core/database.py: module level asyncpg pool used by the
  postgres state backend
- readback/core/dependencies.py: get_model_store reads app.state.model_store
- readback/services/store.py: ModelStore and its backends
"""

from typing import Any, Dict, Generator, List
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from readback.core import database
from readback.models import (
    AdaptiveModelState,
    CorrectionActual,
    CorrectionOriginal,
    UserCorrection,
)
from readback.services import learning
from readback.services.store import InMemoryStateBackend, ModelStore


# ============================================================
# PYTEST PLUGINS CONFIGURATION
# ============================================================

pytest_plugins: List[str] = ['pytest_asyncio']


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers.

    - slow: Marks tests as slow (deselect with -m "not slow")
    - integration: Marks tests that exercise several layers together
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'integration: marks tests exercising the full analysis stack'
    )


# ============================================================
# DATABASE MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_db_pool() -> AsyncMock:
    """
    Create a mock asyncpg connection pool.

    pool.acquire() returns an async context manager yielding a connection
    whose execute/fetch/fetchrow/fetchval methods are AsyncMocks. Configure
    return values per test:

        mock_db_pool.conn.fetchrow.return_value = {'state': '{...}'}

    Returns:
        AsyncMock: Pool with a `conn` attribute for the shared connection
    """
    pool = AsyncMock()

    conn = AsyncMock()
    conn.execute = AsyncMock(return_value='INSERT 0 1')
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)

    pool.acquire = Mock(return_value=acquire_context)
    pool.conn = conn
    return pool


@pytest.fixture
def patched_db_pool(mock_db_pool: AsyncMock, monkeypatch) -> AsyncMock:
    """Install mock_db_pool as the module level pool in readback.core.database."""
    monkeypatch.setattr(database, '_pool', mock_db_pool)
    return mock_db_pool


# ============================================================
# MODEL FIXTURES
# ============================================================

@pytest.fixture
def default_state() -> AdaptiveModelState:
    """Fresh model with default weights and a 1000 entry history cap."""
    return learning.create_default_state(1000)


@pytest.fixture
def memory_store() -> ModelStore:
    """ModelStore backed by an empty in-memory backend."""
    return ModelStore(InMemoryStateBackend(), max_history_size=1000)


def make_correction(
    predicted_errors: List[str],
    actual_errors: List[str],
    predicted_correct: bool = False,
    actually_correct: bool = False,
    predicted_phase: str = 'cruise',
    actual_phase: str = 'cruise',
) -> UserCorrection:
    """Build a UserCorrection with the fields the learning rules read."""
    return UserCorrection(
        original=CorrectionOriginal(
            atc='PAL456, descend and maintain flight level 250',
            pilot='Descend and maintain flight level 150, PAL456',
            predictedCorrect=predicted_correct,
            predictedErrors=predicted_errors,
            predictedPhase=predicted_phase,
        ),
        corrected=CorrectionActual(
            isActuallyCorrect=actually_correct,
            actualErrors=actual_errors,
            actualPhase=actual_phase,
        ),
    )


@pytest.fixture
def correction_factory():
    """Expose make_correction to tests as a fixture."""
    return make_correction


# ============================================================
# API FIXTURES
# ============================================================

@pytest.fixture
def client(memory_store: ModelStore) -> Generator[TestClient, None, None]:
    """
    TestClient for the FastAPI app with an in-memory model store.

    The lifespan handler is not run; the store is attached directly to
    app.state so every test starts from a default model.
    """
    from readback.main import app

    app.state.model_store = memory_store
    yield TestClient(app)
    app.state.model_store = None


# ============================================================
# SAMPLE TRANSCRIPTS
# ============================================================

@pytest.fixture
def labeled_transcript() -> str:
    """Two complete exchanges with explicit speaker labels."""
    return (
        'ATC: PAL456, climb and maintain flight level 350\n'
        'PILOT: Climb and maintain flight level 350, PAL456\n'
        'ATC: PAL456, squawk 2416\n'
        'PILOT: Squawk 2416, PAL456'
    )


@pytest.fixture
def quoted_transcript() -> str:
    """One exchange on a single line using quoted fragments."""
    return '"PAL456, climb and maintain FL350" "Climb and maintain FL350, PAL456"'


@pytest.fixture
def sample_model_document(default_state: AdaptiveModelState) -> Dict[str, Any]:
    """Serialized default model as returned by export."""
    return learning.serialize(default_state)
