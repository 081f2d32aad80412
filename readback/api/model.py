"""
Adaptive model endpoints.

- GET  /model - current state and statistics
- POST /model/correct - learn from one user correction
- POST /model/batch-learn - learn from several corrections in order
- POST /model/reinforce - apply training-session results
- POST /model/config - partial learning config update
- POST /model/reset - restore default weights
- GET  /model/export - serialized model document
- POST /model/import - replace the model with an exported document

Requests are validated before the store is touched, so a rejected request
never changes the model. Persistence failures after a successful update are
reported in persistenceError; only import answers 503 for them.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, HTTPException

from readback.core.dependencies import ModelStoreDep
from readback.models import (
    BatchLearnRequest,
    ConfigUpdate,
    CorrectionRequest,
    CorrectionResponse,
    ModelStateResponse,
    ResetRequest,
    SessionResults,
    StatsResponse,
)
from readback.services.store import ModelStore, PersistenceError

logger = logging.getLogger(__name__)

router = APIRouter()


def _state_response(store: ModelStore) -> ModelStateResponse:
    return ModelStateResponse(
        state=store.snapshot(),
        stats=store.stats(),
        persistenceError=store.last_persistence_error,
    )


@router.get("", response_model=ModelStateResponse)
async def get_model(store: ModelStoreDep) -> ModelStateResponse:
    """Current model state and statistics."""
    try:
        return _state_response(store)
    except Exception as e:
        logger.error(f"Error reading model state: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to read model state")


@router.post("/correct", response_model=CorrectionResponse)
async def correct(data: CorrectionRequest, store: ModelStoreDep) -> CorrectionResponse:
    """
    Learn from one correction.

    Raises:
        HTTPException 400: If original or corrected is missing.
        HTTPException 500: If the update fails.
    """
    if data.original is None or data.corrected is None:
        logger.warning("POST /model/correct rejected: missing original or corrected")
        raise HTTPException(status_code=400, detail="Both original and corrected are required")

    try:
        stats, updates = await store.apply_correction(data.to_correction())
        return CorrectionResponse(
            stats=stats,
            updates=updates,
            persistenceError=store.last_persistence_error,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error applying correction: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to apply correction")


@router.post("/batch-learn", response_model=CorrectionResponse)
async def batch_learn(data: BatchLearnRequest, store: ModelStoreDep) -> CorrectionResponse:
    if not data.examples:
        logger.warning("POST /model/batch-learn rejected: no examples")
        raise HTTPException(status_code=400, detail="At least one example is required")

    try:
        stats, updates = await store.batch_learn(data.examples)
        return CorrectionResponse(
            stats=stats,
            updates=updates,
            persistenceError=store.last_persistence_error,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in batch learning: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to apply batch learning")


@router.post("/reinforce", response_model=StatsResponse)
async def reinforce(data: SessionResults, store: ModelStoreDep) -> StatsResponse:
    """
    Apply a training session's results.

    Raises:
        HTTPException 400: If totalReadbacks is not positive.
    """
    if data.totalReadbacks <= 0:
        logger.warning(f"POST /model/reinforce rejected: totalReadbacks={data.totalReadbacks}")
        raise HTTPException(status_code=400, detail="totalReadbacks must be greater than zero")

    try:
        stats = await store.reinforce(data)
        return StatsResponse(stats=stats, persistenceError=store.last_persistence_error)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error applying reinforcement: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to apply reinforcement")


@router.post("/config", response_model=ModelStateResponse)
async def update_config(data: ConfigUpdate, store: ModelStoreDep) -> ModelStateResponse:
    try:
        await store.update_config(data)
        return _state_response(store)
    except Exception as e:
        logger.error(f"Error updating config: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update config")


@router.post("/reset", response_model=ModelStateResponse)
async def reset(store: ModelStoreDep, data: Optional[ResetRequest] = None) -> ModelStateResponse:
    """Restore default weights and config; history is kept only with preserveHistory."""
    preserve_history = data.preserveHistory if data else False
    try:
        await store.reset(preserve_history)
        return _state_response(store)
    except Exception as e:
        logger.error(f"Error resetting model: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to reset model")


@router.get("/export")
async def export_model(store: ModelStoreDep) -> Dict[str, Any]:
    """Serialized model: {version, createdAt, updatedAt, weights, history, config}."""
    try:
        return store.export()
    except Exception as e:
        logger.error(f"Error exporting model: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to export model")


@router.post("/import", response_model=ModelStateResponse)
async def import_model(store: ModelStoreDep, document: Any = Body(...)) -> ModelStateResponse:
    """
    Replace the model with an exported document.

    A malformed document loads as a default model.

    Raises:
        HTTPException 503: If the imported model could not be persisted.
    """
    try:
        await store.import_state(document, strict=True)
        return _state_response(store)
    except PersistenceError as e:
        logger.warning(f"Imported model not persisted: {str(e)}")
        raise HTTPException(status_code=503, detail=f"Model imported but not persisted: {str(e)}")
    except Exception as e:
        logger.error(f"Error importing model: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to import model")
