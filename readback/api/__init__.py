"""
Readback API package.

Routers:
- analysis: single-exchange and full-dialogue analysis
- model: adaptive model state, learning and import/export
"""

from fastapi import APIRouter

from readback.api.analysis import router as analysis_router
from readback.api.model import router as model_router

# Mounted under {api_prefix}/readback by readback.main
api_router = APIRouter()

api_router.include_router(analysis_router, tags=["analysis"])
api_router.include_router(model_router, prefix="/model", tags=["model"])

__all__ = [
    "api_router",
    "analysis_router",
    "model_router",
]
