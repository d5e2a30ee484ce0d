"""API v1 router: all JSON endpoints under /api/v1 prefix."""

from fastapi import APIRouter

from .smo.routes import router as smo_router
from .workflows.routes import router as workflows_router

api_v1_router = APIRouter(prefix="/api/v1", tags=["api-v1"])

api_v1_router.include_router(workflows_router)
api_v1_router.include_router(smo_router)
