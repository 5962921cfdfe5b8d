from fastapi import APIRouter

from .analyze import router as analyze_router
from .health import router as health_router
from .sessions import router as sessions_router
from .statistics import router as statistics_router


api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(statistics_router, tags=["statistics"])
api_router.include_router(analyze_router)
api_router.include_router(sessions_router)
