"""
FastAPI application entry point for the readback analysis service.

Configures logging and CORS, creates the process-wide ModelStore in the
lifespan handler and registers the API routers under {api_prefix}/readback.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from readback import __version__
from readback.api import api_router
from readback.core.config import get_settings
from readback.core.database import close_db
from readback.services.store import ModelStore, create_backend

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    On startup:
        - Create the model store for STATE_BACKEND and load the saved model
          (defaults when the backend is empty or unreachable)

    On shutdown:
        - Close the database pool if the postgres backend opened one
    """
    logger.info(f"{settings.app_name} starting (state backend: {settings.state_backend})")
    store = ModelStore(create_backend(settings.state_backend))
    await store.load()
    app.state.model_store = store

    yield

    logger.info(f"{settings.app_name} shutting down")
    try:
        await close_db()
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description=(
        "Analyzes ATC instructions and pilot readbacks, rates transcript "
        "phraseology and adapts its detection weights from user corrections."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=f"{settings.api_prefix}/readback", tags=["readback"])


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    """API name, version and documentation links."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "readback.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
