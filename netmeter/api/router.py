"""Master API router — includes all sub-routers."""

from fastapi import APIRouter

from .routes.health import router as health_router
from .routes.traffic import router as traffic_router

api_router = APIRouter()

api_router.include_router(traffic_router)
api_router.include_router(health_router)
