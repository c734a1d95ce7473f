"""API route registrations."""
from fastapi import APIRouter

from voguecurate.api.routes import collections, uploads, workspace


api_router = APIRouter()
api_router.include_router(workspace.router)
api_router.include_router(uploads.router)
api_router.include_router(collections.router)

__all__ = ["api_router"]
