from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.countdesk.core.config import settings
from app.countdesk.core.error_catalog import ErrorCatalog
from app.countdesk.core.errors import error_response
from app.countdesk.db.session import get_db

router = APIRouter(tags=["ops"])


def _gateway_state() -> str:
    if settings.SHOPIFY_SHOP_DOMAIN and settings.SHOPIFY_ACCESS_TOKEN:
        return "configured"
    return "unconfigured"


@router.get("/health")
async def health(request: Request):
    return {"status": "ok", "service": settings.APP_NAME, "trace_id": request.state.trace_id}


@router.get("/ready")
def ready(request: Request, db=Depends(get_db)):
    """Database round trip; the gateway is reported but never called."""
    trace_id = request.state.trace_id
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        error = ErrorCatalog.DB_UNAVAILABLE
        return error_response(error.code, error.message, {"type": type(exc).__name__}, trace_id, error.status_code)
    return {"status": "ready", "database": "ok", "gateway": _gateway_state(), "trace_id": trace_id}
