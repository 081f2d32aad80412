"""
FastAPI dependency injection for the readback service.

Key Dependencies Provided:
- get_settings_dependency / SettingsDep: the cached Settings singleton
- get_model_store / ModelStoreDep: the process-wide ModelStore created by
  the application lifespan (readback.main)

Both are thin wrappers so tests can swap them through
app.dependency_overrides:

    app.dependency_overrides[get_model_store] = lambda: ModelStore(InMemoryStateBackend())
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from readback.core.config import Settings, get_settings
from readback.services.store import ModelStore


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """Return the Settings singleton instance."""
    return get_settings()


# =============================================================================
# Model Store Dependency
# =============================================================================

def get_model_store(request: Request) -> ModelStore:
    """
    Return the ModelStore attached to the application state.

    Raises:
        HTTPException: 503 if the application started without a store.
    """
    store = getattr(request.app.state, "model_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Model store is not initialized")
    return store


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

# Usage: async def endpoint(settings: SettingsDep)
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

# Usage: async def endpoint(store: ModelStoreDep)
ModelStoreDep = Annotated[ModelStore, Depends(get_model_store)]
