"""API v1 module.

Contains all v1 API routes.
"""

from fastapi import APIRouter

from gesh.api.v1.sync import router as sync_router

router = APIRouter(prefix="/v1")
router.include_router(sync_router)

__all__ = ["router"]
