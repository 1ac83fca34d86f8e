from fastapi import APIRouter

from app.countdesk.core.config import settings
from app.countdesk.routers.catalog import router as catalog_router
from app.countdesk.routers.health import router as health_router
from app.countdesk.routers.metrics import router as metrics_router
from app.countdesk.routers.reports import router as reports_router
from app.countdesk.routers.tasks import router as tasks_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(tasks_router, prefix="/api", tags=["tasks"])
api_router.include_router(reports_router, prefix="/api", tags=["reports"])
api_router.include_router(catalog_router, prefix="/api", tags=["catalog"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, prefix="/api", tags=["ops"])
